"""
MongoDB entity store built on Beanie.

The Beanie documents mirror the domain models one to one; conversion
happens at the store boundary so the services never see ODM objects.
"""
import logging
from datetime import datetime
from typing import List, Optional, Type, TypeVar

from beanie import Document, Indexed
from pydantic import BaseModel
from pymongo import ASCENDING, IndexModel
from pymongo.errors import DuplicateKeyError

from .base import EntityStore, DuplicateTokenError
from ..models.document import DocumentModel, SignatureModel, SignatureStatus
from ..models.workflow import SignatureWorkflowModel

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class DocumentRecord(DocumentModel, Document):
    document_id: Indexed(str, unique=True)

    class Settings:
        name = "documents"


class SignatureRecord(SignatureModel, Document):
    signature_id: Indexed(str, unique=True)
    document_id: Indexed(str)

    # Beanie assigns the ObjectId on insert
    class Config:
        frozen = False

    class Settings:
        name = "signatures"


class WorkflowRecord(SignatureWorkflowModel, Document):
    workflow_id: Indexed(str, unique=True)
    token: Indexed(str, unique=True)
    signer_email: Indexed(str)

    class Settings:
        name = "signature_workflows"
        indexes = [
            IndexModel([("document_id", ASCENDING), ("sign_order", ASCENDING)]),
        ]


DOCUMENT_MODELS = [DocumentRecord, SignatureRecord, WorkflowRecord]

_ODM_FIELDS = {"id", "revision_id"}


def _to_model(record: Optional[Document], model_cls: Type[M]) -> Optional[M]:
    if record is None:
        return None
    return model_cls(**record.model_dump(exclude=_ODM_FIELDS))


class MongoEntityStore(EntityStore):
    """Entity store backed by MongoDB collections (Beanie must be initialised)"""

    async def save_document(self, document: DocumentModel) -> DocumentModel:
        existing = await DocumentRecord.find_one(DocumentRecord.document_id == document.document_id)
        record = DocumentRecord(**document.model_dump())
        if existing:
            record.id = existing.id
        await record.save()
        return document

    async def get_document(self, document_id: str) -> Optional[DocumentModel]:
        record = await DocumentRecord.find_one(DocumentRecord.document_id == document_id)
        return _to_model(record, DocumentModel)

    async def save_signature(self, signature: SignatureModel) -> SignatureModel:
        await SignatureRecord(**signature.model_dump()).insert()
        return signature

    async def list_signatures_for_document(self, document_id: str) -> List[SignatureModel]:
        records = await SignatureRecord.find(
            SignatureRecord.document_id == document_id
        ).sort("+signed_at").to_list()
        return [_to_model(r, SignatureModel) for r in records]

    async def save_workflow(self, workflow: SignatureWorkflowModel) -> SignatureWorkflowModel:
        existing = await WorkflowRecord.find_one(WorkflowRecord.workflow_id == workflow.workflow_id)
        record = WorkflowRecord(**workflow.model_dump())
        if existing:
            record.id = existing.id
        try:
            await record.save()
        except DuplicateKeyError as e:
            raise DuplicateTokenError("Signature token already in use") from e
        return workflow

    async def get_workflow_by_token(self, token: str) -> Optional[SignatureWorkflowModel]:
        record = await WorkflowRecord.find_one(WorkflowRecord.token == token)
        return _to_model(record, SignatureWorkflowModel)

    async def list_workflows_for_document(self, document_id: str) -> List[SignatureWorkflowModel]:
        records = await WorkflowRecord.find(
            WorkflowRecord.document_id == document_id
        ).sort("+sign_order", "+created_at").to_list()
        return [_to_model(r, SignatureWorkflowModel) for r in records]

    async def list_workflows_by_signer(
        self, signer_email: str, status: Optional[SignatureStatus] = None
    ) -> List[SignatureWorkflowModel]:
        query = WorkflowRecord.find(WorkflowRecord.signer_email == signer_email)
        if status is not None:
            query = query.find(WorkflowRecord.status == status)
        records = await query.sort("+sign_order").to_list()
        return [_to_model(r, SignatureWorkflowModel) for r in records]

    async def list_expired_pending_workflows(self, now: datetime) -> List[SignatureWorkflowModel]:
        records = await WorkflowRecord.find(
            WorkflowRecord.status == SignatureStatus.PENDING,
            WorkflowRecord.expires_at < now,
        ).to_list()
        return [_to_model(r, SignatureWorkflowModel) for r in records]
