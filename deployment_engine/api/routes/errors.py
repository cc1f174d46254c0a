from fastapi import APIRouter, Depends

from deployment_engine.api.container import get_error_service

router = APIRouter(prefix="/errors", tags=["errors"])


@router.get("/statistics")
def error_statistics(service=Depends(get_error_service)):
    return service.get_statistics().to_dict()


@router.get("/active")
def active_errors(service=Depends(get_error_service)):
    return [e.to_dict() for e in service.get_active_errors()]
