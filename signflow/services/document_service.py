"""
Document Service

Upload of PDF documents, the document projection returned by the API and
download of the signed result.
"""
import hashlib
import io
import logging
import mimetypes
from typing import Optional

import pypdf

from ..core.config import settings
from ..core.errors import DocumentNotFound, DocumentNotSigned, InvalidDocument, VerificationError
from ..models.document import DocumentModel
from ..schemas.document import DocumentResponse, SignatureResponse
from ..schemas.workflow import WorkflowResponse
from ..stores.base import BlobStore, EntityStore

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"


def download_url_for(document_id: str) -> str:
    return f"{settings.API_V1_STR}/documents/{document_id}/download"


async def project_document(store: EntityStore, document: DocumentModel) -> DocumentResponse:
    """Build the API view of a document with its signatures and slots."""
    signatures = await store.list_signatures_for_document(document.document_id)
    workflows = await store.list_workflows_for_document(document.document_id)
    return DocumentResponse(
        document_id=document.document_id,
        name=document.name,
        mime_type=document.mime_type,
        file_size=document.file_size,
        page_count=document.page_count,
        checksum=document.checksum,
        uploaded_by=document.uploaded_by,
        status=document.status,
        created_at=document.created_at,
        signed_at=document.signed_at,
        expires_at=document.expires_at,
        signatures=[SignatureResponse.model_validate(s) for s in signatures],
        workflows=[WorkflowResponse.model_validate(w) for w in workflows],
        download_url=download_url_for(document.document_id) if document.is_signed else None,
    )


class DocumentService:
    """Service layer for document upload and retrieval"""

    def __init__(self, store: EntityStore, blobs: BlobStore, max_size_mb: int = None):
        self.store = store
        self.blobs = blobs
        self.max_file_size = (max_size_mb or settings.MAX_DOCUMENT_SIZE_MB) * 1024 * 1024

    async def upload(
        self,
        filename: str,
        data: bytes,
        uploaded_by: str = "system",
        content_type: Optional[str] = None,
    ) -> DocumentModel:
        """
        Validate and store a new PDF document.

        Args:
            filename: Original file name, kept as display name
            data: File content
            uploaded_by: Uploader identity
            content_type: MIME type announced by the client

        Returns:
            The created document, status PENDING
        """
        page_count = self._validate(filename, data, content_type)

        handle = await self.blobs.put(data)
        document = DocumentModel(
            name=filename,
            mime_type=PDF_MIME_TYPE,
            file_size=len(data),
            page_count=page_count,
            checksum=hashlib.sha256(data).hexdigest(),
            uploaded_by=uploaded_by or "system",
            original_handle=handle,
        )
        await self.store.save_document(document)

        logger.info(f"Document {document.document_id} uploaded by {document.uploaded_by}: {filename} ({page_count} pages)")
        return document

    async def get(self, document_id: str) -> DocumentResponse:
        document = await self._load(document_id)
        return await project_document(self.store, document)

    async def download_signed(self, document_id: str) -> bytes:
        """Bytes of the signed document."""
        document = await self._load(document_id)
        if not document.is_signed:
            raise DocumentNotSigned(f"Document {document_id} has not been signed yet")
        try:
            return await self.blobs.get(document.signed_handle)
        except (KeyError, OSError) as e:
            logger.error(f"Signed bytes of document {document_id} unavailable", exc_info=True)
            raise VerificationError("Signed document content is unavailable") from e

    async def _load(self, document_id: str) -> DocumentModel:
        document = await self.store.get_document(document_id)
        if not document:
            raise DocumentNotFound(f"Document {document_id} not found")
        return document

    def _validate(self, filename: str, data: bytes, content_type: Optional[str]) -> int:
        """Check size, type and structure of an upload; returns the page count."""
        if not filename:
            raise InvalidDocument("Filename is required")

        if len(data) > self.max_file_size:
            raise InvalidDocument(
                f"File too large. Maximum size: {self.max_file_size // (1024 * 1024)}MB",
                status_code=413
            )

        mime_type = content_type or mimetypes.guess_type(filename)[0]
        if mime_type not in (PDF_MIME_TYPE, None, "application/octet-stream") or not data.startswith(PDF_MAGIC):
            logger.warning(f"Rejected upload {filename}: type {mime_type}")
            raise InvalidDocument(f"File type not supported: {mime_type}", status_code=415)

        try:
            reader = pypdf.PdfReader(io.BytesIO(data))
            page_count = len(reader.pages)
        except Exception as e:
            logger.warning(f"Rejected upload {filename}: unreadable PDF ({e})")
            raise InvalidDocument("File is not a readable PDF document") from e

        if page_count == 0:
            raise InvalidDocument("PDF document has no pages")
        return page_count
