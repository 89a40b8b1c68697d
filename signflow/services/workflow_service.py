"""
Workflow Service

Owns the lifecycle of signer slots: creation of a multi-signer process,
token redemption, terminal transitions and the document status derived
from them. Expiry is detected lazily when a token is redeemed; there is no
background sweep.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from ..core.errors import (
    DocumentNotFound,
    InvalidToken,
    InvalidWorkflowDefinition,
    WorkflowExpired,
    WorkflowNotPending,
)
from ..core.locks import DocumentLockRegistry
from ..core.logging_config import mask_token
from ..models.document import DocumentModel, SignatureKind, SignatureStatus, utcnow
from ..models.workflow import SignatureWorkflowModel
from ..schemas.workflow import WorkflowSignerDto
from ..stores.base import DuplicateTokenError, EntityStore
from .notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
MAX_TOKEN_ATTEMPTS = 5


class WorkflowEngine:
    """Service layer for signer slots and document status.

    Methods documented as "caller holds the document lock" are meant to be
    composed by the signing orchestrator inside its own critical section;
    the others acquire the lock themselves.
    """

    def __init__(
        self,
        store: EntityStore,
        dispatcher: NotificationDispatcher,
        locks: DocumentLockRegistry,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.locks = locks
        self.clock = clock

    async def create_workflow(
        self,
        document_id: str,
        signers: Sequence[WorkflowSignerDto],
        expiration_days: Optional[int] = None,
    ) -> List[SignatureWorkflowModel]:
        """
        Create one PENDING slot per signer and notify the first signing order.

        Args:
            document_id: Document to be signed
            signers: Signer definitions (name, email, order, required kind)
            expiration_days: Optional lifetime of the slots and the document

        Returns:
            The created slots, tokens included
        """
        self._validate_signers(signers, expiration_days)

        async with self.locks.hold(document_id):
            document = await self.store.get_document(document_id)
            if not document:
                raise DocumentNotFound(f"Document {document_id} not found")

            now = self.clock()
            expires_at = None
            if expiration_days is not None:
                expires_at = now + timedelta(days=expiration_days)
                document.expires_at = expires_at
                await self.store.save_document(document)

            workflows = []
            for signer in signers:
                workflow = SignatureWorkflowModel(
                    document_id=document_id,
                    signer_name=signer.name,
                    signer_email=signer.email,
                    sign_order=signer.sign_order,
                    required_kind=signer.required_kind,
                    token=await self._new_token(),
                    created_at=now,
                    expires_at=expires_at,
                )
                workflows.append(await self._insert_with_unique_token(workflow))

            for workflow in workflows:
                if workflow.sign_order == 1:
                    await self._notify(workflow, now)

        logger.info(f"Created signature workflow for document {document_id} with {len(workflows)} signers")
        return workflows

    async def redeem(self, token: str, document_id: Optional[str] = None) -> SignatureWorkflowModel:
        """
        Resolve a token to its PENDING slot. Caller holds the document lock.

        Raises:
            InvalidToken: no slot owns the token, or it belongs to another document
            WorkflowNotPending: the slot already left PENDING
            WorkflowExpired: the slot expired; it is durably marked EXPIRED first
        """
        workflow = await self.store.get_workflow_by_token(token)
        if workflow is None:
            logger.warning(f"Unknown signature token {mask_token(token)}")
            raise InvalidToken()
        if document_id is not None and workflow.document_id != document_id:
            logger.warning(
                f"Token {mask_token(token)} belongs to document {workflow.document_id}, not {document_id}"
            )
            raise InvalidToken()
        if not workflow.is_pending:
            logger.warning(f"Workflow {workflow.workflow_id} is {workflow.status.value}, redemption refused")
            raise WorkflowNotPending()

        now = self.clock()
        if workflow.is_expired(now):
            workflow.leave_pending(SignatureStatus.EXPIRED, now)
            await self.store.save_workflow(workflow)
            logger.info(f"Workflow {workflow.workflow_id} expired at {workflow.expires_at.isoformat()}")
            raise WorkflowExpired()

        return workflow

    async def mark_signed(self, workflow: SignatureWorkflowModel, signature_id: str) -> SignatureWorkflowModel:
        """
        Move a redeemed slot to SIGNED and notify the next signing order.
        Caller holds the document lock.
        """
        now = self.clock()
        workflow.leave_pending(SignatureStatus.SIGNED, now)
        workflow.signature_id = signature_id
        await self.store.save_workflow(workflow)
        logger.info(f"Workflow {workflow.workflow_id} signed by {workflow.signer_email}")

        next_order = workflow.sign_order + 1
        for candidate in await self.store.list_workflows_for_document(workflow.document_id):
            if candidate.workflow_id == workflow.workflow_id:
                continue
            if candidate.is_pending and candidate.sign_order == next_order:
                await self._notify(candidate, now)
        return workflow

    async def reject(self, token: str, reason: Optional[str] = None) -> SignatureWorkflowModel:
        """
        Reject a PENDING slot; the document becomes REJECTED immediately.

        Raises:
            InvalidToken: unknown token
            WorkflowNotPending: the slot already left PENDING
        """
        workflow = await self.store.get_workflow_by_token(token)
        if workflow is None:
            logger.warning(f"Rejection with unknown token {mask_token(token)}")
            raise InvalidToken()

        async with self.locks.hold(workflow.document_id):
            # Re-read under the lock, a concurrent sign may have won
            workflow = await self.store.get_workflow_by_token(token)
            if not workflow.is_pending:
                logger.warning(f"Workflow {workflow.workflow_id} is {workflow.status.value}, rejection refused")
                raise WorkflowNotPending("This signature can no longer be rejected")

            workflow.leave_pending(SignatureStatus.REJECTED, self.clock())
            workflow.rejection_reason = reason
            await self.store.save_workflow(workflow)
            logger.info(f"Workflow {workflow.workflow_id} rejected by {workflow.signer_email}: {reason}")

            document = await self.store.get_document(workflow.document_id)
            if document is not None:
                await self.recompute_document_status(document)
        return workflow

    async def recompute_document_status(self, document: DocumentModel) -> DocumentModel:
        """
        Derive the document status from its slots and signatures.
        Caller holds the document lock.

        - any REJECTED slot makes the document REJECTED
        - without slots, one signature is enough for SIGNED
        - with slots, SIGNED only once every slot is SIGNED
        """
        workflows = await self.store.list_workflows_for_document(document.document_id)
        status = document.status

        if any(w.status == SignatureStatus.REJECTED for w in workflows):
            status = SignatureStatus.REJECTED
        elif not workflows:
            if await self.store.list_signatures_for_document(document.document_id):
                status = SignatureStatus.SIGNED
        elif all(w.status == SignatureStatus.SIGNED for w in workflows):
            status = SignatureStatus.SIGNED

        if status != document.status:
            logger.info(f"Document {document.document_id} status {document.status.value} -> {status.value}")
            document.status = status
            await self.store.save_document(document)
        return document

    async def get_document_workflows(self, document_id: str) -> List[SignatureWorkflowModel]:
        return await self.store.list_workflows_for_document(document_id)

    async def get_workflow_by_token(self, token: str) -> SignatureWorkflowModel:
        workflow = await self.store.get_workflow_by_token(token)
        if workflow is None:
            raise InvalidToken()
        return workflow

    async def get_pending_for_signer(self, signer_email: str) -> List[SignatureWorkflowModel]:
        return await self.store.list_workflows_by_signer(signer_email, SignatureStatus.PENDING)

    async def list_expired_workflows(self, now: Optional[datetime] = None) -> List[SignatureWorkflowModel]:
        """PENDING slots whose expiry passed. Read-only, nothing is transitioned."""
        return await self.store.list_expired_pending_workflows(now or self.clock())

    async def _notify(self, workflow: SignatureWorkflowModel, now: datetime) -> None:
        workflow.notified_at = now
        await self.store.save_workflow(workflow)
        self.dispatcher.dispatch(workflow.signer_email, workflow.token)
        logger.info(
            f"Notification dispatched to {workflow.signer_email} "
            f"(order {workflow.sign_order}, token {mask_token(workflow.token)})"
        )

    async def _new_token(self) -> str:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            token = secrets.token_urlsafe(TOKEN_BYTES)
            if not await self.store.token_exists(token):
                return token
        raise RuntimeError("Could not generate a unique signature token")

    async def _insert_with_unique_token(self, workflow: SignatureWorkflowModel) -> SignatureWorkflowModel:
        for _ in range(MAX_TOKEN_ATTEMPTS):
            try:
                return await self.store.save_workflow(workflow)
            except DuplicateTokenError:
                logger.warning("Signature token collision, drawing a new one")
                workflow.token = await self._new_token()
        raise RuntimeError("Could not store workflow with a unique signature token")

    @staticmethod
    def _validate_signers(signers: Sequence[WorkflowSignerDto], expiration_days: Optional[int]) -> None:
        if not signers:
            raise InvalidWorkflowDefinition("A signature workflow needs at least one signer")
        if expiration_days is not None and expiration_days < 1:
            raise InvalidWorkflowDefinition("expiration_days must be at least 1")
        for signer in signers:
            if not signer.email or not str(signer.email).strip():
                raise InvalidWorkflowDefinition("Every signer needs an email address")
            if not signer.name or not signer.name.strip():
                raise InvalidWorkflowDefinition("Every signer needs a name")
            if signer.sign_order < 1:
                raise InvalidWorkflowDefinition("sign_order must be at least 1")
            if not isinstance(signer.required_kind, SignatureKind):
                raise InvalidWorkflowDefinition(f"Unknown signature kind {signer.required_kind!r}")
