"""
Document and signature models.
A document is the aggregate root; signatures belong to exactly one document.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignatureStatus(str, Enum):
    """Status shared by documents and workflow slots"""
    PENDING = "PENDING"       # Waiting for signature
    SIGNED = "SIGNED"         # Signed successfully
    REJECTED = "REJECTED"     # Rejected by a signer
    EXPIRED = "EXPIRED"       # Signing link expired
    CANCELLED = "CANCELLED"   # Cancelled administratively


TERMINAL_STATUSES = frozenset({
    SignatureStatus.SIGNED,
    SignatureStatus.REJECTED,
    SignatureStatus.EXPIRED,
    SignatureStatus.CANCELLED,
})


class SignatureKind(str, Enum):
    """Legal level of an electronic signature"""
    SIMPLE = "SIMPLE"         # Image stamped onto the page
    ADVANCED = "ADVANCED"     # PKI/X.509 backed
    QUALIFIED = "QUALIFIED"   # eIDAS qualified certificate

    @property
    def uses_certificate(self) -> bool:
        return self is not SignatureKind.SIMPLE


class Placement(BaseModel):
    """Where a signature is drawn; page is zero-based, coordinates in PDF points"""
    page: int = Field(default=0, ge=0)
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class DocumentModel(BaseModel):
    """Main document model"""

    document_id: str = Field(default_factory=lambda: f"doc_{uuid.uuid4().hex[:16]}")
    name: str
    mime_type: str = "application/pdf"
    file_size: int = 0
    page_count: Optional[int] = None
    checksum: Optional[str] = None
    uploaded_by: str = "system"

    # Blob handles
    original_handle: str
    signed_handle: Optional[str] = None

    status: SignatureStatus = SignatureStatus.PENDING

    # Lifecycle
    created_at: datetime = Field(default_factory=utcnow)
    signed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def is_signed(self) -> bool:
        return self.signed_handle is not None


class SignatureModel(BaseModel):
    """One successfully applied signature. Never modified after creation."""

    signature_id: str = Field(default_factory=lambda: f"sig_{uuid.uuid4().hex[:16]}")
    document_id: str
    signer_name: str
    signer_email: str
    kind: SignatureKind
    placement: Placement

    # Certificate details, ADVANCED/QUALIFIED only
    certificate_serial: Optional[str] = None
    certificate_issuer: Optional[str] = None
    certificate_subject: Optional[str] = None
    certificate_not_before: Optional[datetime] = None
    certificate_not_after: Optional[datetime] = None

    # Base64 of the stamped image (SIMPLE) or of the CMS envelope
    signature_data: Optional[str] = None

    signed_at: datetime = Field(default_factory=utcnow)

    # Audit only
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    class Config:
        frozen = True
