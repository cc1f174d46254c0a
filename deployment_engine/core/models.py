"""Core domain models for deployment executions."""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

if TYPE_CHECKING:
    from deployment_engine.diagnosis.models import DeploymentError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ExecutionPhase(Enum):
    """Deployment pipeline phases."""

    INITIALIZING = "initializing"
    ANALYZING_INPUT = "analyzing_input"
    PROVISIONING_INFRASTRUCTURE = "provisioning_infrastructure"
    GENERATING_CREDENTIALS = "generating_credentials"
    EXECUTING_DEPLOYMENT = "executing_deployment"
    VERIFYING_HEALTH = "verifying_health"
    COMPLETED = "completed"
    FAILED = "failed"
    RECOVERING = "recovering"


# Phases that run a remote operation, in pipeline order
PIPELINE_PHASES = (
    ExecutionPhase.ANALYZING_INPUT,
    ExecutionPhase.PROVISIONING_INFRASTRUCTURE,
    ExecutionPhase.GENERATING_CREDENTIALS,
    ExecutionPhase.EXECUTING_DEPLOYMENT,
    ExecutionPhase.VERIFYING_HEALTH,
)


class ExecutionStatus(Enum):
    """Execution status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    RECOVERING = "recovering"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({
    ExecutionStatus.SUCCESS,
    ExecutionStatus.ERROR,
    ExecutionStatus.CANCELLED,
})


# ============================================
# REQUEST
# ============================================

@dataclass
class DeploymentRequest:
    """Request to deploy an application."""
    request_id: str
    workspace_id: str
    user_id: str
    repository_url: str
    branch: str = "main"
    domain: Optional[str] = None
    auth_token: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)


# ============================================
# EXECUTION
# ============================================

@dataclass
class ExecutionStep:
    """One pipeline step (one remote operation)."""
    name: str
    phase: ExecutionPhase
    service: str
    operation: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    success: bool = False
    error: Optional[str] = None
    retry_count: int = 0

    def begin(self, now: Optional[datetime] = None) -> None:
        self.started_at = now or utcnow()
        self.completed_at = None
        self.duration_ms = None
        self.success = False

    def succeed(self, now: Optional[datetime] = None) -> None:
        self._finish(now)
        self.success = True
        self.error = None

    def fail(self, error: str, now: Optional[datetime] = None) -> None:
        self._finish(now)
        self.success = False
        self.error = error
        self.retry_count += 1

    def _finish(self, now: Optional[datetime]) -> None:
        self.completed_at = now or utcnow()
        started = self.started_at or self.completed_at
        self.duration_ms = int((self.completed_at - started).total_seconds() * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "phase": self.phase.value,
            "service": self.service,
            "operation": self.operation,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error": self.error,
            "retry_count": self.retry_count,
        }


@dataclass
class FailureSummary:
    """User-facing description of a permanently failed execution."""
    root_cause: str
    last_attempted_fix: Optional[str]
    estimated_repair_minutes: float
    estimated_cost_impact: float
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_cause": self.root_cause,
            "last_attempted_fix": self.last_attempted_fix,
            "estimated_repair_minutes": self.estimated_repair_minutes,
            "estimated_cost_impact": self.estimated_cost_impact,
            "suggestions": list(self.suggestions),
        }


@dataclass
class DeploymentExecution:
    """One run of the deployment pipeline for a single request."""

    # Identity
    execution_id: UUID
    request_id: str
    workspace_id: str
    user_id: str
    app_name: str = "deployment"

    # State
    phase: ExecutionPhase = ExecutionPhase.INITIALIZING
    status: ExecutionStatus = ExecutionStatus.PENDING
    current_step: str = "Initializing deployment pipeline"

    # Lifecycle timestamps
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    # Progress
    steps: List[ExecutionStep] = field(default_factory=list)
    progress: int = 0

    # Errors / recovery
    errors: List["DeploymentError"] = field(default_factory=list)
    recovery_attempts: int = 0
    simplified: bool = False
    failure_summary: Optional[FailureSummary] = None

    # Phase results
    repository_analysis: Optional[Dict[str, Any]] = None
    infrastructure_provisioning: Optional[Dict[str, Any]] = None
    credential_result: Optional[Dict[str, Any]] = None
    deployment_result: Optional[Dict[str, Any]] = None

    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def step_for(self, phase: ExecutionPhase) -> ExecutionStep:
        for step in self.steps:
            if step.phase == phase:
                return step
        raise KeyError(f"No step for phase {phase.value}")

    @property
    def completed_steps(self) -> List[ExecutionStep]:
        return [s for s in self.steps if s.success]

    @property
    def remaining_steps(self) -> List[ExecutionStep]:
        return [s for s in self.steps if not s.success]

    def recompute_progress(self) -> int:
        total = len(self.steps)
        if total == 0:
            self.progress = 0
        else:
            self.progress = round(len(self.completed_steps) / total * 100)
        return self.progress

    @property
    def server(self) -> Dict[str, Any]:
        """Server record from the latest provisioning result."""
        return (self.infrastructure_provisioning or {}).get("server") or {}

    @property
    def connection_id(self) -> Optional[str]:
        server_id = self.server.get("id")
        return str(server_id) if server_id else None

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            return self._as_dict()

    def _as_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": str(self.execution_id),
            "request_id": self.request_id,
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "app_name": self.app_name,
            "phase": self.phase.value,
            "status": self.status.value,
            "current_step": self.current_step,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "progress": self.progress,
            "steps": [s.to_dict() for s in self.steps],
            "errors": [e.to_dict() for e in self.errors],
            "recovery_attempts": self.recovery_attempts,
            "simplified": self.simplified,
            "failure_summary": self.failure_summary.to_dict() if self.failure_summary else None,
            "repository_analysis": self.repository_analysis,
            "infrastructure_provisioning": self.infrastructure_provisioning,
            "credential_result": self.credential_result,
            "deployment_result": self.deployment_result,
        }
