"""
Interfaces of the external collaborators the signing core relies on.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..models.document import DocumentModel, SignatureModel, SignatureStatus
from ..models.workflow import SignatureWorkflowModel


class BlobStore(ABC):
    """Opaque byte storage: put(bytes) -> handle, get(handle) -> bytes"""

    @abstractmethod
    async def put(self, data: bytes) -> str:
        ...

    @abstractmethod
    async def get(self, handle: str) -> bytes:
        """Raise KeyError or OSError when the handle is unknown."""


class EntityStore(ABC):
    """Keyed storage for documents, signatures and workflow slots"""

    # Documents
    @abstractmethod
    async def save_document(self, document: DocumentModel) -> DocumentModel:
        ...

    @abstractmethod
    async def get_document(self, document_id: str) -> Optional[DocumentModel]:
        ...

    # Signatures
    @abstractmethod
    async def save_signature(self, signature: SignatureModel) -> SignatureModel:
        ...

    @abstractmethod
    async def list_signatures_for_document(self, document_id: str) -> List[SignatureModel]:
        """Signatures of a document in the order they were applied."""

    # Workflow slots
    @abstractmethod
    async def save_workflow(self, workflow: SignatureWorkflowModel) -> SignatureWorkflowModel:
        """Insert or update a slot. Must refuse a token already owned by another slot."""

    @abstractmethod
    async def get_workflow_by_token(self, token: str) -> Optional[SignatureWorkflowModel]:
        ...

    @abstractmethod
    async def list_workflows_for_document(self, document_id: str) -> List[SignatureWorkflowModel]:
        """Slots of a document ordered by sign_order, then creation time."""

    @abstractmethod
    async def list_workflows_by_signer(
        self, signer_email: str, status: Optional[SignatureStatus] = None
    ) -> List[SignatureWorkflowModel]:
        ...

    @abstractmethod
    async def list_expired_pending_workflows(self, now: datetime) -> List[SignatureWorkflowModel]:
        ...

    async def token_exists(self, token: str) -> bool:
        return await self.get_workflow_by_token(token) is not None


class NotificationSink(ABC):
    """Outbound channel telling a signer it is their turn"""

    @abstractmethod
    async def notify(self, signer_email: str, token: str) -> None:
        ...


class DuplicateTokenError(ValueError):
    """Raised by an entity store when a token is already taken"""
