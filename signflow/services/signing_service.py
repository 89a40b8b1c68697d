"""
Signing Service

Applies one signature to a document: resolves the workflow slot when a
token is given, dispatches to the strategy registered for the signature
kind, persists the signed bytes and the Signature record, then advances
the workflow. Everything after loading the document runs under the
document's lock so concurrent signers cannot overwrite each other.
"""
import asyncio
import base64
import binascii
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..core.config import settings
from ..core.errors import (
    DocumentNotFound,
    MissingSignatureMaterial,
    SigningError,
    UnsupportedSignatureKind,
)
from ..core.locks import DocumentLockRegistry
from ..core.logging_config import clear_signing_context, set_signing_context
from ..models.document import DocumentModel, Placement, SignatureKind, SignatureModel, utcnow
from ..schemas.document import DocumentResponse, SignRequest
from ..stores.base import BlobStore, EntityStore
from .document_service import project_document
from .signature.certificate_extractor import CertificateExtractor
from .signature.pdf_signing_engine import PdfSigningEngine
from .workflow_service import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass
class SigningOutcome:
    """What a strategy produced for one signature"""
    pdf_bytes: bytes
    signature_data: Optional[str] = None
    certificate: Dict[str, Any] = field(default_factory=dict)


def _decode_base64(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MissingSignatureMaterial(f"{what} is not valid base64") from e


class SigningStrategy(ABC):
    """Turns a document and the signer's material into a signed document"""

    @abstractmethod
    async def sign(self, pdf_bytes: bytes, request: SignRequest, placement: Placement) -> SigningOutcome:
        ...


class VisualSigningStrategy(SigningStrategy):
    """SIMPLE signatures: the handwritten signature image drawn on the page"""

    def __init__(self, engine: PdfSigningEngine):
        self.engine = engine

    async def sign(self, pdf_bytes: bytes, request: SignRequest, placement: Placement) -> SigningOutcome:
        if not request.signature_image_base64:
            raise MissingSignatureMaterial("A signature image is required for a SIMPLE signature")
        image_bytes = _decode_base64(request.signature_image_base64, "Signature image")

        signed = await asyncio.to_thread(
            self.engine.apply_visual_signature, pdf_bytes, image_bytes, placement
        )
        return SigningOutcome(pdf_bytes=signed, signature_data=request.signature_image_base64)


class CertificateSigningStrategy(SigningStrategy):
    """ADVANCED and QUALIFIED signatures backed by a PKCS#12 container"""

    def __init__(self, extractor: CertificateExtractor, engine: PdfSigningEngine):
        self.extractor = extractor
        self.engine = engine

    async def sign(self, pdf_bytes: bytes, request: SignRequest, placement: Placement) -> SigningOutcome:
        if not request.certificate_base64:
            raise MissingSignatureMaterial(
                f"A certificate container is required for a {request.kind.value} signature"
            )
        container = _decode_base64(request.certificate_base64, "Certificate container")
        return await asyncio.to_thread(self._sign_blocking, pdf_bytes, container, request, placement)

    def _sign_blocking(self, pdf_bytes: bytes, container: bytes, request: SignRequest,
                       placement: Placement) -> SigningOutcome:
        identity = self.extractor.load(container, request.certificate_password)
        alias = self.extractor.select_signing_entry(identity)
        metadata = self.extractor.extract_metadata(identity, alias)
        # Reported only, an expired certificate still signs
        self.extractor.is_currently_valid(identity.certificate_for(alias))

        field_name = f"Signature_{uuid.uuid4().hex[:12]}"
        signed = self.engine.apply_cryptographic_signature(
            pdf_bytes,
            identity.private_key,
            self.extractor.signing_chain(identity),
            request.kind,
            request.signer_name,
            visual_rect=placement,
            field_name=field_name,
        )

        envelope = b""
        for embedded in self.engine.extract_embedded_signatures(signed):
            if embedded.field_name == field_name:
                envelope = embedded.envelope
                break
        return SigningOutcome(
            pdf_bytes=signed,
            signature_data=base64.b64encode(envelope).decode("ascii") if envelope else None,
            certificate=metadata,
        )


class SigningOrchestrator:
    """Service layer for signing documents"""

    def __init__(
        self,
        store: EntityStore,
        blobs: BlobStore,
        workflows: WorkflowEngine,
        locks: DocumentLockRegistry,
        strategies: Dict[SignatureKind, SigningStrategy],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.blobs = blobs
        self.workflows = workflows
        self.locks = locks
        self.strategies = strategies
        self.clock = clock

    @classmethod
    def with_default_strategies(
        cls,
        store: EntityStore,
        blobs: BlobStore,
        workflows: WorkflowEngine,
        locks: DocumentLockRegistry,
        extractor: CertificateExtractor,
        engine: PdfSigningEngine,
        clock: Callable[[], datetime] = utcnow,
    ) -> "SigningOrchestrator":
        certificate_strategy = CertificateSigningStrategy(extractor, engine)
        strategies = {
            SignatureKind.SIMPLE: VisualSigningStrategy(engine),
            SignatureKind.ADVANCED: certificate_strategy,
            SignatureKind.QUALIFIED: certificate_strategy,
        }
        return cls(store, blobs, workflows, locks, strategies, clock)

    async def sign(self, request: SignRequest) -> DocumentResponse:
        """
        Sign a document, optionally as a workflow slot.

        Args:
            request: Signer identity, kind, material, placement and token

        Returns:
            The updated document projection

        Raises:
            DocumentNotFound, InvalidToken, WorkflowNotPending, WorkflowExpired,
            MissingSignatureMaterial, CertificateLoadError, NoCertificateFound,
            UnsupportedSignatureKind, SigningError
        """
        set_signing_context(
            document_id=request.document_id,
            signer_email=request.signer_email,
            workflow_token=request.signature_token,
        )
        try:
            strategy = self.strategies.get(request.kind)
            if strategy is None:
                raise UnsupportedSignatureKind(f"Unsupported signature kind: {request.kind}")

            async with self.locks.hold(request.document_id):
                document = await self.store.get_document(request.document_id)
                if not document:
                    raise DocumentNotFound(f"Document {request.document_id} not found")

                workflow = None
                if request.signature_token:
                    workflow = await self.workflows.redeem(request.signature_token, document.document_id)
                    if workflow.required_kind != request.kind:
                        logger.warning(
                            f"Workflow {workflow.workflow_id} requires {workflow.required_kind.value}, "
                            f"signing with {request.kind.value}"
                        )

                placement = self.placement_for(request)
                # Every signature is applied to the uploaded original
                pdf_bytes = await self._read_original(document)
                outcome = await strategy.sign(pdf_bytes, request, placement)

                try:
                    handle = await self.blobs.put(outcome.pdf_bytes)
                except OSError as e:
                    logger.error("Could not store signed document", exc_info=True)
                    raise SigningError("Could not store the signed document") from e

                now = self.clock()
                certificate = outcome.certificate
                signature = SignatureModel(
                    document_id=document.document_id,
                    signer_name=request.signer_name,
                    signer_email=request.signer_email,
                    kind=request.kind,
                    placement=placement,
                    certificate_serial=certificate.get("serial_number"),
                    certificate_issuer=certificate.get("issuer"),
                    certificate_subject=certificate.get("subject"),
                    certificate_not_before=certificate.get("not_before"),
                    certificate_not_after=certificate.get("not_after"),
                    signature_data=outcome.signature_data,
                    signed_at=now,
                    ip_address=request.ip_address,
                    user_agent=request.user_agent,
                )
                await self.store.save_signature(signature)

                document.signed_handle = handle
                document.signed_at = now
                await self.store.save_document(document)
                logger.info(
                    f"{request.kind.value} signature {signature.signature_id} applied to "
                    f"document {document.document_id} by {request.signer_email}"
                )

                if workflow is not None:
                    await self.workflows.mark_signed(workflow, signature.signature_id)
                await self.workflows.recompute_document_status(document)

                return await project_document(self.store, document)
        finally:
            clear_signing_context()

    @staticmethod
    def placement_for(request: SignRequest) -> Placement:
        """Requested rectangle, completed with the defaults of the signature kind."""
        if request.kind.uses_certificate:
            defaults = (
                settings.CERTIFICATE_DEFAULT_PAGE, settings.CERTIFICATE_DEFAULT_X,
                settings.CERTIFICATE_DEFAULT_Y, settings.CERTIFICATE_DEFAULT_WIDTH,
                settings.CERTIFICATE_DEFAULT_HEIGHT,
            )
        else:
            defaults = (
                settings.VISUAL_DEFAULT_PAGE, settings.VISUAL_DEFAULT_X,
                settings.VISUAL_DEFAULT_Y, settings.VISUAL_DEFAULT_WIDTH,
                settings.VISUAL_DEFAULT_HEIGHT,
            )
        page, x, y, width, height = defaults
        return Placement(
            page=request.page if request.page is not None else page,
            x=request.x if request.x is not None else x,
            y=request.y if request.y is not None else y,
            width=request.width if request.width is not None else width,
            height=request.height if request.height is not None else height,
        )

    async def _read_original(self, document: DocumentModel) -> bytes:
        try:
            return await self.blobs.get(document.original_handle)
        except (KeyError, OSError) as e:
            logger.error(f"Original bytes of document {document.document_id} unavailable", exc_info=True)
            raise SigningError("Could not read the original document") from e
