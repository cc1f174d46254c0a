"""Status and health records for deployments."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from deployment_engine.core.models import ExecutionPhase, utcnow


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============================================
# ENUMS
# ============================================

class StatusLevel(Enum):
    """Coarse health classification."""
    HEALTHY = "healthy"
    WARNING = "warning"
    DEGRADED = "degraded"
    CRITICAL = "critical"
    FAILED = "failed"
    UNKNOWN = "unknown"


class ProbeStatus(Enum):
    PASS = "pass"
    FAIL = "fail"
    TIMEOUT = "timeout"


class ServiceState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"
    UNKNOWN = "unknown"


class IssueSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WarningType(Enum):
    PERFORMANCE = "performance"
    COST = "cost"
    SECURITY = "security"
    CONFIGURATION = "configuration"


class ZombieReason(Enum):
    DEPLOYMENT_FAILED = "deployment_failed"
    DEPLOYMENT_ABANDONED = "deployment_abandoned"
    DUPLICATE = "duplicate"
    TEST = "test"


class ZombieRecommendation(Enum):
    TERMINATE = "terminate"
    INVESTIGATE = "investigate"
    KEEP = "keep"


TERMINAL_PHASES = frozenset({ExecutionPhase.COMPLETED, ExecutionPhase.FAILED})


# ============================================
# RESOURCES
# ============================================

@dataclass
class ServiceStatus:
    """One process running on a resource."""
    name: str
    status: ServiceState = ServiceState.UNKNOWN
    port: Optional[int] = None
    process_id: Optional[int] = None
    uptime_seconds: int = 0
    restart_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "port": self.port,
            "process_id": self.process_id,
            "uptime_seconds": self.uptime_seconds,
            "restart_count": self.restart_count,
        }


@dataclass
class InfrastructureStatus:
    """One provisioned resource attached to a deployment."""
    id: str
    type: str = "droplet"
    provider: str = "digitalocean"
    region: str = "nyc3"
    status: StatusLevel = StatusLevel.UNKNOWN

    # Connection info
    ip_address: Optional[str] = None
    hostname: Optional[str] = None
    port: Optional[int] = None
    health_url: Optional[str] = None

    # Utilization (%)
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    disk_usage: float = 0.0
    network_bytes_in: int = 0
    network_bytes_out: int = 0

    # Cost (USD)
    hourly_cost: float = 0.0
    monthly_cost: float = 0.0

    services: List[ServiceStatus] = field(default_factory=list)

    created_at: datetime = field(default_factory=utcnow)
    last_health_check: Optional[datetime] = None
    health_check_status: ProbeStatus = ProbeStatus.PASS
    health_check_details: Optional[str] = None

    def failed_service_count(self) -> int:
        return sum(1 for s in self.services if s.status == ServiceState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "provider": self.provider,
            "region": self.region,
            "status": self.status.value,
            "ip_address": self.ip_address,
            "hostname": self.hostname,
            "port": self.port,
            "health_url": self.health_url,
            "cpu_usage": self.cpu_usage,
            "memory_usage": self.memory_usage,
            "disk_usage": self.disk_usage,
            "network_bytes_in": self.network_bytes_in,
            "network_bytes_out": self.network_bytes_out,
            "hourly_cost": self.hourly_cost,
            "monthly_cost": self.monthly_cost,
            "services": [s.to_dict() for s in self.services],
            "created_at": _iso(self.created_at),
            "last_health_check": _iso(self.last_health_check),
            "health_check_status": self.health_check_status.value,
            "health_check_details": self.health_check_details,
        }


# ============================================
# ISSUES / WARNINGS / HISTORY
# ============================================

@dataclass(frozen=True)
class StatusIssue:
    """Open health problem. Added and removed, never edited."""
    severity: IssueSeverity
    type: str
    title: str
    description: str
    affected_components: tuple = ()
    mitigation_steps: tuple = ()
    auto_resolvable: bool = False
    estimated_resolution: Optional[str] = None
    detected_at: datetime = field(default_factory=utcnow)
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "severity": self.severity.value,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "detected_at": _iso(self.detected_at),
            "affected_components": list(self.affected_components),
            "mitigation_steps": list(self.mitigation_steps),
            "auto_resolvable": self.auto_resolvable,
            "estimated_resolution": self.estimated_resolution,
        }


@dataclass(frozen=True)
class StatusWarning:
    """Advisory note, lower severity than an issue."""
    type: WarningType
    message: str
    recommendation: str
    impact: str = "low"
    detected_at: datetime = field(default_factory=utcnow)
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "type": self.type.value,
            "message": self.message,
            "recommendation": self.recommendation,
            "impact": self.impact,
            "detected_at": _iso(self.detected_at),
        }


@dataclass(frozen=True)
class StatusHistoryEntry:
    phase: ExecutionPhase
    status: StatusLevel
    details: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "phase": self.phase.value,
            "status": self.status.value,
            "details": self.details,
        }


# ============================================
# DEPLOYMENT STATUS
# ============================================

@dataclass
class DeploymentStatus:
    """Health record for one deployment, kept by the monitor."""

    deployment_id: str
    workspace_id: str
    user_id: str
    name: str

    phase: ExecutionPhase = ExecutionPhase.INITIALIZING
    status: StatusLevel = StatusLevel.UNKNOWN
    current_step: str = "Initializing deployment"
    progress: int = 0

    health_score: float = 100.0
    uptime_seconds: int = 0

    infrastructure: List[InfrastructureStatus] = field(default_factory=list)
    total_monthly_cost: float = 0.0

    active_issues: List[StatusIssue] = field(default_factory=list)
    warnings: List[StatusWarning] = field(default_factory=list)
    status_history: List[StatusHistoryEntry] = field(default_factory=list)

    started_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)

    id: UUID = field(default_factory=uuid4)
    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            return self._as_dict()

    def _as_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "deployment_id": self.deployment_id,
            "workspace_id": self.workspace_id,
            "user_id": self.user_id,
            "name": self.name,
            "phase": self.phase.value,
            "status": self.status.value,
            "current_step": self.current_step,
            "progress": self.progress,
            "health_score": self.health_score,
            "uptime_seconds": self.uptime_seconds,
            "infrastructure": [i.to_dict() for i in self.infrastructure],
            "total_monthly_cost": self.total_monthly_cost,
            "active_issues": [i.to_dict() for i in self.active_issues],
            "warnings": [w.to_dict() for w in self.warnings],
            "status_history": [h.to_dict() for h in self.status_history],
            "started_at": _iso(self.started_at),
            "last_updated": _iso(self.last_updated),
        }


# ============================================
# DERIVED
# ============================================

@dataclass(frozen=True)
class ZombieServerCandidate:
    """Resource that keeps billing for a failed or abandoned deployment."""
    resource_id: str
    deployment_id: str
    created_at: datetime
    last_activity: datetime
    monthly_cost: float
    reason: ZombieReason
    confidence: float
    recommendation: ZombieRecommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "deployment_id": self.deployment_id,
            "created_at": _iso(self.created_at),
            "last_activity": _iso(self.last_activity),
            "monthly_cost": self.monthly_cost,
            "reason": self.reason.value,
            "confidence": self.confidence,
            "recommendation": self.recommendation.value,
        }


@dataclass
class StatusSummary:
    total_deployments: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    total_monthly_cost: float = 0.0
    average_health_score: float = 100.0
    zombie_server_count: int = 0
    potential_savings: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_deployments": self.total_deployments,
            "by_status": dict(self.by_status),
            "total_monthly_cost": self.total_monthly_cost,
            "average_health_score": self.average_health_score,
            "zombie_server_count": self.zombie_server_count,
            "potential_savings": self.potential_savings,
        }
