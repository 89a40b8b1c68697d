"""
Signer slots of a multi-signer process.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .document import SignatureKind, SignatureStatus, utcnow
from ..core.errors import WorkflowNotPending


class SignatureWorkflowModel(BaseModel):
    """One signer's reserved position, addressed by a unique token"""

    workflow_id: str = Field(default_factory=lambda: f"wf_{uuid.uuid4().hex[:16]}")
    document_id: str
    signer_name: str
    signer_email: str
    sign_order: int = Field(ge=1)
    required_kind: SignatureKind
    status: SignatureStatus = SignatureStatus.PENDING
    token: str

    created_at: datetime = Field(default_factory=utcnow)
    notified_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    signature_id: Optional[str] = None
    rejection_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == SignatureStatus.PENDING

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def leave_pending(self, status: SignatureStatus, now: datetime) -> None:
        """Apply the single allowed transition out of PENDING."""
        if not self.is_pending:
            raise WorkflowNotPending(
                f"Workflow {self.workflow_id} is {self.status.value}, no further transition allowed"
            )
        if status == SignatureStatus.PENDING:
            raise ValueError("A workflow slot cannot transition to PENDING")
        self.status = status
        if status == SignatureStatus.SIGNED:
            self.signed_at = now
        elif status == SignatureStatus.REJECTED:
            self.rejected_at = now
