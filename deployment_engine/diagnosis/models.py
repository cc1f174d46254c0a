"""Domain models for classified deployment errors and their analysis."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from deployment_engine.core.models import ExecutionPhase, utcnow


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============================================
# ENUMS
# ============================================

class ErrorType(Enum):
    """Deployment error taxonomy."""
    SSH_CONNECTION_FAILURE = "ssh_connection_failure"
    PACKAGE_MANAGER_CONFLICT = "package_manager_conflict"
    SERVICE_CONFIGURATION_ERROR = "service_configuration_error"
    NETWORK_CONNECTIVITY_ERROR = "network_connectivity_error"
    DEPENDENCY_RESOLUTION_ERROR = "dependency_resolution_error"
    INFRASTRUCTURE_PROVISIONING_ERROR = "infrastructure_provisioning_error"
    APPLICATION_RUNTIME_ERROR = "application_runtime_error"
    DNS_PROPAGATION_ERROR = "dns_propagation_error"
    SSL_CERTIFICATE_ERROR = "ssl_certificate_error"
    CLOUD_INIT_TIMING_ERROR = "cloud_init_timing_error"


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecoveryStrategy(Enum):
    """Named recovery policies."""
    RETRY_CURRENT_STEP = "retry_current_step"
    PROVISION_NEW_SERVER = "provision_new_server"
    SIMPLIFIED_DEPLOYMENT = "simplified_deployment"


# ============================================
# PATTERNS
# ============================================

@dataclass(frozen=True)
class ErrorPattern:
    """Fixed error signature and what it usually means."""
    signature: str
    type: ErrorType
    severity: ErrorSeverity
    common_causes: Tuple[str, ...]


# ============================================
# ANALYSIS
# ============================================

@dataclass
class RecoveryAction:
    """One remediation command suggested by a diagnosis."""
    description: str
    command: str = ""
    expected_result: str = ""
    timeout_seconds: float = 30.0
    retryable: bool = True
    prerequisite: Optional[str] = None
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "description": self.description,
            "command": self.command,
            "expected_result": self.expected_result,
            "timeout_seconds": self.timeout_seconds,
            "retryable": self.retryable,
            "prerequisite": self.prerequisite,
        }


@dataclass
class RiskAssessment:
    data_loss_risk: RiskLevel = RiskLevel.LOW
    downtime_risk: RiskLevel = RiskLevel.MEDIUM
    cost_impact: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_loss_risk": self.data_loss_risk.value,
            "downtime_risk": self.downtime_risk.value,
            "cost_impact": self.cost_impact,
        }


@dataclass
class AIErrorAnalysis:
    """Root-cause analysis for a classified error."""
    root_cause: str
    confidence: float
    reasoning: str
    recommended_actions: List[RecoveryAction] = field(default_factory=list)
    estimated_repair_minutes: float = 30.0
    risk_assessment: RiskAssessment = field(default_factory=RiskAssessment)
    source: str = "rule_based"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_cause": self.root_cause,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "recommended_actions": [a.to_dict() for a in self.recommended_actions],
            "estimated_repair_minutes": self.estimated_repair_minutes,
            "risk_assessment": self.risk_assessment.to_dict(),
            "source": self.source,
        }


@dataclass
class SystemDiagnostics:
    """Raw diagnostic command output gathered from a server."""
    system: Dict[str, str] = field(default_factory=dict)
    services: Dict[str, str] = field(default_factory=dict)
    application: Dict[str, str] = field(default_factory=dict)
    network: Dict[str, str] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "timestamp": _iso(self.timestamp),
            "system": dict(self.system),
            "services": dict(self.services),
            "application": dict(self.application),
            "network": dict(self.network),
        }


# ============================================
# RECOVERY
# ============================================

@dataclass(frozen=True)
class RecoveryAttempt:
    """Record of one recovery attempt. Never mutated once created."""
    strategy: RecoveryStrategy
    actions: Tuple[RecoveryAction, ...]
    success: bool
    duration_ms: int
    outcome: str
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "timestamp": _iso(self.timestamp),
            "strategy": self.strategy.value,
            "actions": [a.to_dict() for a in self.actions],
            "success": self.success,
            "duration_ms": self.duration_ms,
            "outcome": self.outcome,
        }


# ============================================
# ERROR
# ============================================

@dataclass
class DeploymentError:
    """A classified deployment failure."""
    type: ErrorType
    severity: ErrorSeverity
    phase: ExecutionPhase
    service: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    diagnostics: Optional[SystemDiagnostics] = None
    analysis: Optional[AIErrorAnalysis] = None
    recovery_attempts: List[RecoveryAttempt] = field(default_factory=list)
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=utcnow)

    def resolve(self, now: Optional[datetime] = None) -> bool:
        """Mark resolved. Returns False (and changes nothing) if already resolved."""
        if self.resolved:
            return False
        self.resolved = True
        self.resolved_at = now or utcnow()
        return True

    def record_attempt(self, attempt: RecoveryAttempt) -> None:
        self.recovery_attempts.append(attempt)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "timestamp": _iso(self.timestamp),
            "type": self.type.value,
            "severity": self.severity.value,
            "phase": self.phase.value,
            "service": self.service,
            "message": self.message,
            "context": self.context,
            "diagnostics": self.diagnostics.to_dict() if self.diagnostics else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "recovery_attempts": [a.to_dict() for a in self.recovery_attempts],
            "resolved": self.resolved,
            "resolved_at": _iso(self.resolved_at),
        }
