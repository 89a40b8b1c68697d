"""
Verification Service

Correlates the Signature records of a document with the signature
dictionaries embedded in its signed bytes. A record counts as valid when an
embedded signature carries exactly the same signer name. Neither the CMS
digest nor the certificate path is re-validated.
"""
import asyncio
import logging

from ..core.errors import DocumentNotFound, VerificationError
from ..schemas.document import SignatureVerification, VerificationResponse
from ..stores.base import BlobStore, EntityStore
from .signature.pdf_signing_engine import PdfSigningEngine

logger = logging.getLogger(__name__)

ALL_VALID_MESSAGE = "All signatures are valid"
SOME_INVALID_MESSAGE = "Some signatures are invalid or suspicious"
NOT_SIGNED_MESSAGE = "Document is not signed"
SIGNATURE_NOT_FOUND = "Signature not found in PDF"


class VerificationEngine:
    """Service layer for document signature verification"""

    def __init__(self, store: EntityStore, blobs: BlobStore, engine: PdfSigningEngine):
        self.store = store
        self.blobs = blobs
        self.engine = engine

    async def verify(self, document_id: str) -> VerificationResponse:
        document = await self.store.get_document(document_id)
        if not document:
            raise DocumentNotFound(f"Document {document_id} not found")

        if not document.is_signed:
            return VerificationResponse(is_valid=False, message=NOT_SIGNED_MESSAGE, signatures=[])

        try:
            signed_bytes = await self.blobs.get(document.signed_handle)
        except (KeyError, OSError) as e:
            logger.error(f"Signed bytes of document {document_id} unavailable", exc_info=True)
            raise VerificationError("Signed document content is unavailable") from e

        embedded = await asyncio.to_thread(lambda: list(self.engine.extract_embedded_signatures(signed_bytes)))
        embedded_names = {info.signer_name for info in embedded if info.signer_name is not None}

        results = []
        for signature in await self.store.list_signatures_for_document(document_id):
            found = signature.signer_name in embedded_names
            result = SignatureVerification(
                signer_name=signature.signer_name,
                signer_email=signature.signer_email,
                is_valid=found,
                signed_at=signature.signed_at,
                certificate_issuer=signature.certificate_issuer,
                certificate_serial=signature.certificate_serial,
                certificate_valid_from=signature.certificate_not_before,
                certificate_valid_to=signature.certificate_not_after,
                validation_errors=[] if found else [SIGNATURE_NOT_FOUND],
            )
            if signature.certificate_serial is not None:
                # No authority is consulted
                result.certificate_valid = True
            results.append(result)

        overall = all(r.is_valid for r in results)
        if not overall:
            logger.warning(f"Document {document_id} has signatures without embedded counterpart")
        logger.info(f"Verified document {document_id}: {len(results)} signatures, valid={overall}")

        return VerificationResponse(
            is_valid=overall,
            message=ALL_VALID_MESSAGE if overall else SOME_INVALID_MESSAGE,
            signatures=results,
        )
