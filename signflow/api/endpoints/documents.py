"""
Document API endpoints

Handles document upload, signing, retrieval, download and verification.
"""
import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response

from ..deps import ServiceContainer, get_container
from ...schemas.document import DocumentResponse, SignDocumentRequest, SignRequest, VerificationResponse
from ...services.document_service import project_document

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload", response_model=DocumentResponse, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    uploaded_by: str = Form("system"),
    container: ServiceContainer = Depends(get_container)
):
    """Upload a PDF document to be signed"""
    data = await file.read()
    document = await container.documents.upload(
        file.filename, data, uploaded_by=uploaded_by, content_type=file.content_type
    )
    return await project_document(container.store, document)


@router.post("/sign", response_model=DocumentResponse)
async def sign_document(
    sign_request: SignDocumentRequest,
    request: Request,
    container: ServiceContainer = Depends(get_container)
):
    """
    Sign a document.

    SIMPLE signatures need a base64 image, ADVANCED and QUALIFIED ones a
    base64 PKCS#12 container and its password. A workflow token binds the
    signature to the signer's slot.
    """
    enriched = SignRequest(
        **sign_request.model_dump(),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return await container.signing.sign(enriched)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    container: ServiceContainer = Depends(get_container)
):
    """Get a document with its signatures and workflow slots"""
    return await container.documents.get(document_id)


@router.get("/{document_id}/download")
async def download_document(
    document_id: str,
    container: ServiceContainer = Depends(get_container)
):
    """Download the signed PDF"""
    content = await container.documents.download_signed(document_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="signed_{document_id}.pdf"'}
    )


@router.get("/{document_id}/verify", response_model=VerificationResponse)
async def verify_document(
    document_id: str,
    container: ServiceContainer = Depends(get_container)
):
    """Check every recorded signature against the signed PDF"""
    return await container.verification.verify(document_id)
