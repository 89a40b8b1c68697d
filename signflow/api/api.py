from fastapi import APIRouter

from .endpoints import documents, workflows

api_router = APIRouter()

# Workflow routes first, their literal segments must win over /{document_id}
api_router.include_router(workflows.router, prefix="/documents", tags=["workflows"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
