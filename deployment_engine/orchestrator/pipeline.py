# deployment_engine/orchestrator/pipeline.py
"""Pipeline definition - one remote operation per phase, plus argument builders."""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from deployment_engine.core.agents import ServiceName
from deployment_engine.core.models import (
    DeploymentExecution,
    DeploymentRequest,
    ExecutionPhase,
    ExecutionStep,
)


MODERN_FRAMEWORKS = {"react", "vue", "angular", "fastapi", "express"}


def extract_app_name(repository_url: Optional[str]) -> str:
    """'https://github.com/acme/Shop.git' -> 'shop'."""
    if not repository_url:
        return "deployment"

    match = re.search(r"/([^/]+?)(?:\.git)?/?$", repository_url)
    return match.group(1).lower() if match else "deployment"


def should_use_containers(repository_analysis: Optional[Dict[str, Any]]) -> bool:
    analysis = repository_analysis or {}
    has_dockerfile = "Dockerfile" in (analysis.get("build_files") or [])
    framework = ((analysis.get("tech_stack") or {}).get("framework") or "").lower()
    return has_dockerfile or framework in MODERN_FRAMEWORKS


def infrastructure_requirements(
    repository_analysis: Optional[Dict[str, Any]],
    request: DeploymentRequest,
) -> Dict[str, Any]:
    analysis = repository_analysis or {}
    tech_stack = analysis.get("tech_stack") or {}
    deployment_config = analysis.get("deployment_config") or {}

    return {
        "compute": {
            "cpu_cores": 1,
            "memory_gb": 1,
            "storage_gb": 25,
        },
        "network": {
            "public_ip": True,
            "domain": request.domain,
        },
        "application": {
            "framework": tech_stack.get("framework"),
            "language": tech_stack.get("primary_language"),
            "port": deployment_config.get("port") or 3000,
        },
    }


def deployment_strategy(execution: DeploymentExecution) -> Dict[str, Any]:
    """Full strategy, or the simplified one (no containers, no health checks)."""
    if execution.simplified:
        return {
            "type": "direct",
            "containerization": "none",
            "health_checks": [],
        }

    return {
        "type": "direct",
        "containerization": "docker" if should_use_containers(execution.repository_analysis) else "none",
        "health_checks": [{
            "type": "http",
            "endpoint": "/health",
            "interval_seconds": 30,
            "timeout_seconds": 5,
            "retries": 3,
            "initial_delay_seconds": 10,
        }],
    }


# -------------------------
# ARGUMENT BUILDERS
# -------------------------

def analyze_args(execution: DeploymentExecution, request: DeploymentRequest) -> Dict[str, Any]:
    return {
        "repository_url": request.repository_url,
        "branch": request.branch,
        "deep_analysis": True,
        "workspace_id": request.workspace_id,
        "user_id": request.user_id,
    }


def provision_args(execution: DeploymentExecution, request: DeploymentRequest) -> Dict[str, Any]:
    return {
        "requirements": infrastructure_requirements(execution.repository_analysis, request),
        "workspace_id": request.workspace_id,
        "user_id": request.user_id,
    }


def credential_args(
    execution: DeploymentExecution,
    request: DeploymentRequest,
    *,
    purpose: str = "automated_deployment",
) -> Dict[str, Any]:
    suffix = "recovery-key" if purpose == "recovery_deployment" else "deploy-key"
    return {
        "name": f"{execution.app_name}-{suffix}",
        "key_type": "ed25519",
        "purpose": purpose,
        "server_id": execution.server.get("id"),
        "tags": ["deployment", "recovery" if purpose == "recovery_deployment" else "automated"],
        "workspace_id": request.workspace_id,
        "user_id": request.user_id,
    }


def deploy_args(execution: DeploymentExecution, request: DeploymentRequest) -> Dict[str, Any]:
    key = (execution.credential_result or {}).get("key") or {}
    return {
        "repository_url": request.repository_url,
        "branch": request.branch,
        "infrastructure_targets": [{
            "id": execution.server.get("id"),
            "host": execution.server.get("ip_address"),
            "ssh_key_id": key.get("id"),
        }],
        "deployment_strategy": deployment_strategy(execution),
        "parameters": dict(request.parameters),
        "workspace_id": request.workspace_id,
        "user_id": request.user_id,
    }


def verify_args(execution: DeploymentExecution, request: DeploymentRequest) -> Dict[str, Any]:
    deployment = (execution.deployment_result or {}).get("execution") or {}
    return {
        "deployment_id": deployment.get("id"),
        "workspace_id": request.workspace_id,
        "user_id": request.user_id,
    }


@dataclass(frozen=True)
class PhaseDefinition:
    phase: ExecutionPhase
    name: str
    service: str
    operation: str
    build_args: Callable[[DeploymentExecution, DeploymentRequest], Dict[str, Any]]
    result_field: Optional[str] = None

    def new_step(self) -> ExecutionStep:
        return ExecutionStep(
            name=self.name,
            phase=self.phase,
            service=self.service,
            operation=self.operation,
        )


PIPELINE: List[PhaseDefinition] = [
    PhaseDefinition(
        phase=ExecutionPhase.ANALYZING_INPUT,
        name="Repository Analysis",
        service=ServiceName.REPOSITORY_ANALYSIS,
        operation="analyze_repository",
        build_args=analyze_args,
        result_field="repository_analysis",
    ),
    PhaseDefinition(
        phase=ExecutionPhase.PROVISIONING_INFRASTRUCTURE,
        name="Infrastructure Provisioning",
        service=ServiceName.INFRASTRUCTURE,
        operation="provision_infrastructure",
        build_args=provision_args,
        result_field="infrastructure_provisioning",
    ),
    PhaseDefinition(
        phase=ExecutionPhase.GENERATING_CREDENTIALS,
        name="SSH Key Generation",
        service=ServiceName.CREDENTIALS,
        operation="generate_ssh_key",
        build_args=credential_args,
        result_field="credential_result",
    ),
    PhaseDefinition(
        phase=ExecutionPhase.EXECUTING_DEPLOYMENT,
        name="Application Deployment",
        service=ServiceName.DEPLOYMENT,
        operation="execute_deployment_plan",
        build_args=deploy_args,
        result_field="deployment_result",
    ),
    PhaseDefinition(
        phase=ExecutionPhase.VERIFYING_HEALTH,
        name="Health Verification",
        service=ServiceName.DEPLOYMENT,
        operation="monitor_deployment",
        build_args=verify_args,
        result_field=None,
    ),
]


def phase_index(phase: ExecutionPhase) -> int:
    for index, definition in enumerate(PIPELINE):
        if definition.phase == phase:
            return index
    raise ValueError(f"{phase.value} is not a pipeline phase")
