"""
Signature workflow API endpoints

Multi-signer workflows: definition, listing, rejection and the pending
signatures of a signer.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..deps import ServiceContainer, get_container
from ...schemas.workflow import CreateWorkflowRequest, CreatedWorkflowResponse, WorkflowResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/workflow", response_model=List[CreatedWorkflowResponse], status_code=201)
async def create_workflow(
    workflow_request: CreateWorkflowRequest,
    container: ServiceContainer = Depends(get_container)
):
    """Define the signers of a document; order 1 is notified right away"""
    workflows = await container.workflows.create_workflow(
        workflow_request.document_id,
        workflow_request.signers,
        workflow_request.expiration_days,
    )
    return [CreatedWorkflowResponse.model_validate(w) for w in workflows]


@router.get("/workflow/pending", response_model=List[WorkflowResponse])
async def get_pending_signatures(
    email: str = Query(...),
    container: ServiceContainer = Depends(get_container)
):
    """Slots still waiting for this signer"""
    workflows = await container.workflows.get_pending_for_signer(email)
    return [WorkflowResponse.model_validate(w) for w in workflows]


@router.post("/workflow/{token}/reject", response_model=WorkflowResponse)
async def reject_signature(
    token: str,
    reason: Optional[str] = Query(None),
    container: ServiceContainer = Depends(get_container)
):
    """Refuse to sign; the whole document becomes REJECTED"""
    workflow = await container.workflows.reject(token, reason)
    return WorkflowResponse.model_validate(workflow)


@router.get("/{document_id}/workflow", response_model=List[WorkflowResponse])
async def get_document_workflow(
    document_id: str,
    container: ServiceContainer = Depends(get_container)
):
    """Slots of a document ordered by signing order"""
    workflows = await container.workflows.get_document_workflows(document_id)
    return [WorkflowResponse.model_validate(w) for w in workflows]
