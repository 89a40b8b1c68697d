"""
In-process stores. Used by default and throughout the test-suite.
"""
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from .base import BlobStore, EntityStore, DuplicateTokenError
from ..models.document import DocumentModel, SignatureModel, SignatureStatus
from ..models.workflow import SignatureWorkflowModel


class InMemoryBlobStore(BlobStore):
    """Keeps blobs in a dict keyed by a random handle"""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    async def put(self, data: bytes) -> str:
        handle = f"mem://{uuid.uuid4().hex}"
        self._blobs[handle] = bytes(data)
        return handle

    async def get(self, handle: str) -> bytes:
        return self._blobs[handle]

    def __len__(self):
        return len(self._blobs)


class InMemoryEntityStore(EntityStore):
    """Dict-backed entity store with a unique token index.

    Models are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self):
        self._documents: Dict[str, DocumentModel] = {}
        self._signatures: Dict[str, SignatureModel] = {}
        self._workflows: Dict[str, SignatureWorkflowModel] = {}
        self._tokens: Dict[str, str] = {}

    async def save_document(self, document: DocumentModel) -> DocumentModel:
        self._documents[document.document_id] = document.model_copy(deep=True)
        return document

    async def get_document(self, document_id: str) -> Optional[DocumentModel]:
        document = self._documents.get(document_id)
        return document.model_copy(deep=True) if document else None

    async def save_signature(self, signature: SignatureModel) -> SignatureModel:
        if signature.signature_id in self._signatures:
            raise ValueError(f"Signature {signature.signature_id} already recorded")
        self._signatures[signature.signature_id] = signature
        return signature

    async def list_signatures_for_document(self, document_id: str) -> List[SignatureModel]:
        signatures = [s for s in self._signatures.values() if s.document_id == document_id]
        return sorted(signatures, key=lambda s: s.signed_at)

    async def save_workflow(self, workflow: SignatureWorkflowModel) -> SignatureWorkflowModel:
        owner = self._tokens.get(workflow.token)
        if owner is not None and owner != workflow.workflow_id:
            raise DuplicateTokenError("Signature token already in use")
        self._tokens[workflow.token] = workflow.workflow_id
        self._workflows[workflow.workflow_id] = workflow.model_copy(deep=True)
        return workflow

    async def get_workflow_by_token(self, token: str) -> Optional[SignatureWorkflowModel]:
        workflow_id = self._tokens.get(token)
        if workflow_id is None:
            return None
        return self._workflows[workflow_id].model_copy(deep=True)

    async def list_workflows_for_document(self, document_id: str) -> List[SignatureWorkflowModel]:
        workflows = [w for w in self._workflows.values() if w.document_id == document_id]
        workflows.sort(key=lambda w: (w.sign_order, w.created_at))
        return [w.model_copy(deep=True) for w in workflows]

    async def list_workflows_by_signer(
        self, signer_email: str, status: Optional[SignatureStatus] = None
    ) -> List[SignatureWorkflowModel]:
        return [
            w.model_copy(deep=True)
            for w in self._workflows.values()
            if w.signer_email == signer_email and (status is None or w.status == status)
        ]

    async def list_expired_pending_workflows(self, now: datetime) -> List[SignatureWorkflowModel]:
        return [
            w.model_copy(deep=True)
            for w in self._workflows.values()
            if w.is_pending and w.is_expired(now)
        ]
