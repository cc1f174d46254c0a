"""Event models for the deployment engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from deployment_engine.core.models import utcnow


@dataclass
class DeploymentEvent:
    """Lifecycle event published to listeners."""

    event_type: str
    deployment_id: str
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=utcnow)

    # -------------------------
    # ORCHESTRATOR EVENTS
    # -------------------------

    @staticmethod
    def deployment_started(execution):
        return DeploymentEvent(
            event_type="deployment_started",
            deployment_id=str(execution.execution_id),
            payload={"execution": execution.to_dict()},
        )

    @staticmethod
    def step_completed(execution, step):
        return DeploymentEvent(
            event_type="step_completed",
            deployment_id=str(execution.execution_id),
            payload={
                "execution": execution.to_dict(),
                "step": step.to_dict(),
            },
        )

    @staticmethod
    def step_failed(execution, step):
        return DeploymentEvent(
            event_type="step_failed",
            deployment_id=str(execution.execution_id),
            payload={
                "execution": execution.to_dict(),
                "step": step.to_dict(),
            },
        )

    @staticmethod
    def deployment_completed(execution):
        return DeploymentEvent(
            event_type="deployment_completed",
            deployment_id=str(execution.execution_id),
            payload={"execution": execution.to_dict()},
        )

    @staticmethod
    def deployment_failed(execution):
        summary = execution.failure_summary
        return DeploymentEvent(
            event_type="deployment_failed",
            deployment_id=str(execution.execution_id),
            payload={
                "execution": execution.to_dict(),
                "failure": summary.to_dict() if summary else None,
            },
        )

    @staticmethod
    def deployment_cancelled(execution):
        return DeploymentEvent(
            event_type="deployment_cancelled",
            deployment_id=str(execution.execution_id),
            payload={"execution": execution.to_dict()},
        )

    @staticmethod
    def execution_error(execution, error):
        return DeploymentEvent(
            event_type="execution_error",
            deployment_id=str(execution.execution_id),
            payload={
                "execution": execution.to_dict(),
                "error": error.to_dict(),
            },
        )

    @staticmethod
    def recovery_successful(execution, attempt):
        return DeploymentEvent(
            event_type="recovery_successful",
            deployment_id=str(execution.execution_id),
            payload={
                "execution": execution.to_dict(),
                "attempt": attempt.to_dict(),
                "recovery_attempts": execution.recovery_attempts,
            },
        )

    @staticmethod
    def recovery_failed(execution, attempt):
        return DeploymentEvent(
            event_type="recovery_failed",
            deployment_id=str(execution.execution_id),
            payload={
                "execution": execution.to_dict(),
                "attempt": attempt.to_dict() if attempt else None,
                "recovery_attempts": execution.recovery_attempts,
            },
        )

    # -------------------------
    # MONITOR EVENTS
    # -------------------------

    @staticmethod
    def issue_detected(deployment_id: str, issue):
        return DeploymentEvent(
            event_type="issue_detected",
            deployment_id=deployment_id,
            payload={"issue": issue.to_dict()},
        )

    @staticmethod
    def issue_resolved(deployment_id: str, issue):
        return DeploymentEvent(
            event_type="issue_resolved",
            deployment_id=deployment_id,
            payload={"issue": issue.to_dict()},
        )

    @staticmethod
    def warning_added(deployment_id: str, warning):
        return DeploymentEvent(
            event_type="warning_added",
            deployment_id=deployment_id,
            payload={"warning": warning.to_dict()},
        )

    @staticmethod
    def zombie_servers_detected(candidates: List[Any]):
        return DeploymentEvent(
            event_type="zombie_servers_detected",
            deployment_id="*",
            payload={
                "candidates": [c.to_dict() for c in candidates],
                "count": len(candidates),
            },
        )
