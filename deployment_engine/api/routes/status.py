from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from deployment_engine.api.container import get_status_monitor

router = APIRouter(prefix="/status", tags=["status"])


@router.get("/")
def list_statuses(
    workspace_id: Optional[str] = None,
    user_id: Optional[str] = None,
    monitor=Depends(get_status_monitor),
):
    return [s.to_dict() for s in monitor.get_all_statuses(workspace_id, user_id)]


@router.get("/summary")
def status_summary(
    workspace_id: Optional[str] = None,
    user_id: Optional[str] = None,
    monitor=Depends(get_status_monitor),
):
    return monitor.get_status_summary(workspace_id, user_id).to_dict()


@router.get("/zombies")
def zombie_candidates(monitor=Depends(get_status_monitor)):
    return [c.to_dict() for c in monitor.get_zombie_candidates()]


@router.get("/{deployment_id}")
def get_status(
    deployment_id: str,
    monitor=Depends(get_status_monitor),
):
    status = monitor.get_deployment_status(deployment_id)

    if not status:
        raise HTTPException(status_code=404, detail="Deployment status not found")

    return status.to_dict()
