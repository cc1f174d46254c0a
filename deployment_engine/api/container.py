#deployment_engine\api\container.py
from deployment_engine.container import error_service, orchestrator, status_monitor


def get_orchestrator():
    return orchestrator


def get_status_monitor():
    return status_monitor


def get_error_service():
    return error_service
