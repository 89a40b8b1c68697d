"""
Document signing schemas for API requests/responses.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from ..models.document import SignatureKind, SignatureStatus
from .workflow import WorkflowResponse


class SignDocumentRequest(BaseModel):
    """Request schema for document signing"""
    document_id: str
    signer_name: str = Field(min_length=1)
    signer_email: EmailStr
    kind: SignatureKind

    # SIMPLE signatures
    signature_image_base64: Optional[str] = None

    # ADVANCED/QUALIFIED signatures
    certificate_base64: Optional[str] = None
    certificate_password: Optional[str] = None

    # Placement, defaults depend on the kind
    page: Optional[int] = Field(default=None, ge=0)
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)

    # Workflow
    signature_token: Optional[str] = None


class SignRequest(SignDocumentRequest):
    """Sign request enriched with audit data taken from the HTTP request"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# Response Schemas

class SignatureResponse(BaseModel):
    """Response schema for an applied signature"""
    signature_id: str
    signer_name: str
    signer_email: str
    kind: SignatureKind
    signed_at: datetime
    certificate_serial: Optional[str] = None
    certificate_issuer: Optional[str] = None

    class Config:
        from_attributes = True


class DocumentResponse(BaseModel):
    """Response schema for a document and everything attached to it"""
    document_id: str
    name: str
    mime_type: str
    file_size: int
    page_count: Optional[int] = None
    checksum: Optional[str] = None
    uploaded_by: str
    status: SignatureStatus
    created_at: datetime
    signed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    signatures: List[SignatureResponse] = Field(default_factory=list)
    workflows: List[WorkflowResponse] = Field(default_factory=list)
    download_url: Optional[str] = None  # Only once signed


class SignatureVerification(BaseModel):
    """Verification outcome for one recorded signature"""
    signer_name: str
    signer_email: str
    is_valid: bool
    signed_at: datetime
    certificate_issuer: Optional[str] = None
    certificate_serial: Optional[str] = None
    certificate_valid_from: Optional[datetime] = None
    certificate_valid_to: Optional[datetime] = None
    certificate_valid: Optional[bool] = None
    validation_errors: List[str] = Field(default_factory=list)


class VerificationResponse(BaseModel):
    """Response schema for document verification"""
    is_valid: bool
    message: str
    signatures: List[SignatureVerification] = Field(default_factory=list)
