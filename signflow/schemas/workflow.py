"""
Signature workflow schemas for API requests/responses.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from ..models.document import SignatureKind, SignatureStatus


class WorkflowSignerDto(BaseModel):
    """One signer of a workflow definition"""
    name: str = Field(min_length=1)
    email: EmailStr
    sign_order: int = Field(ge=1)
    required_kind: SignatureKind


class CreateWorkflowRequest(BaseModel):
    """Request schema for defining the signers of a document"""
    document_id: str
    signers: List[WorkflowSignerDto]
    expiration_days: Optional[int] = Field(default=None, ge=1)


class WorkflowResponse(BaseModel):
    """Response schema for a workflow slot. The token is never included."""
    workflow_id: str
    document_id: str
    signer_name: str
    signer_email: str
    sign_order: int
    required_kind: SignatureKind
    status: SignatureStatus
    created_at: datetime
    notified_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    signature_id: Optional[str] = None
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class CreatedWorkflowResponse(WorkflowResponse):
    """Slot as returned once, right after creation, with its signing token"""
    token: str
