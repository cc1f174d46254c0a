from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from deployment_engine.api.container import get_orchestrator
from deployment_engine.api.schemas.deployment import CancelResponse, DeploymentCreateRequest
from deployment_engine.core.errors import (
    DeploymentValidationError,
    ExecutionAlreadyActive,
    ExecutionNotFound,
)
from deployment_engine.core.models import DeploymentRequest

router = APIRouter(prefix="/deployments", tags=["deployments"])


@router.post("/", status_code=202)
def create_deployment(
    request: DeploymentCreateRequest,
    orchestrator=Depends(get_orchestrator),
):
    try:
        execution = orchestrator.start(DeploymentRequest(**request.model_dump()))
    except DeploymentValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ExecutionAlreadyActive as e:
        raise HTTPException(status_code=409, detail=str(e))

    return execution.to_dict()


@router.get("/")
def list_deployments(
    workspace_id: Optional[str] = None,
    user_id: Optional[str] = None,
    orchestrator=Depends(get_orchestrator),
):
    return [e.to_dict() for e in orchestrator.list(workspace_id, user_id)]


@router.get("/{execution_id}")
def get_deployment(
    execution_id: UUID,
    orchestrator=Depends(get_orchestrator),
):
    execution = orchestrator.get(execution_id)

    if not execution:
        raise HTTPException(status_code=404, detail="Deployment not found")

    return execution.to_dict()


@router.post("/{execution_id}/cancel", response_model=CancelResponse)
def cancel_deployment(
    execution_id: UUID,
    orchestrator=Depends(get_orchestrator),
):
    try:
        cancelled = orchestrator.cancel(execution_id)
    except ExecutionNotFound:
        raise HTTPException(status_code=404, detail="Deployment not found")

    execution = orchestrator.get(execution_id)
    return CancelResponse(
        execution_id=str(execution_id),
        cancelled=cancelled,
        status=execution.status.value,
    )
