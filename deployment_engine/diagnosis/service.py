"""Error handling service - classifies, diagnoses and tracks deployment errors."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import UUID

from deployment_engine.core.agents import RemoteAgentClient, ServiceName
from deployment_engine.core.models import ExecutionPhase
from deployment_engine.diagnosis.classifier import classify_error
from deployment_engine.diagnosis.diagnoser import Diagnoser, RuleBasedDiagnoser
from deployment_engine.diagnosis.models import DeploymentError, SystemDiagnostics

logger = logging.getLogger(__name__)


# section -> {field: command}
DIAGNOSTIC_COMMANDS: Dict[str, Dict[str, str]] = {
    "system": {
        "uptime": "uptime",
        "memory": "free -h",
        "load_average": "cat /proc/loadavg",
        "disk_space": "df -h /",
    },
    "services": {
        "systemd_failed": "systemctl --failed --no-pager",
        "nginx_status": "systemctl status nginx --no-pager -l",
        "app_status": "systemctl status app --no-pager -l",
        "listening_ports": "ss -tlnp",
    },
    "application": {
        "nginx_config": "nginx -t 2>&1",
        "logs": "journalctl -u app.service --no-pager -n 20",
    },
    "network": {
        "connectivity": "curl -I http://localhost/ 2>&1",
        "firewall_status": "ufw status || iptables -L",
        "dns_resolution": "nslookup google.com",
    },
}


@dataclass
class ErrorStatistics:
    total_errors: int = 0
    resolved_errors: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_severity: Dict[str, int] = field(default_factory=dict)
    average_resolution_minutes: float = 0.0
    cost_impact: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_errors": self.total_errors,
            "resolved_errors": self.resolved_errors,
            "by_type": dict(self.by_type),
            "by_severity": dict(self.by_severity),
            "average_resolution_minutes": self.average_resolution_minutes,
            "cost_impact": self.cost_impact,
        }


class ErrorHandlingService:
    """
    Entry point for failures raised anywhere in the pipeline.

    Flow:
    1. Classify the message against the pattern table
    2. Gather system diagnostics when a server connection is known
    3. Ask the diagnoser for a root-cause analysis
    4. Track the error for statistics and later resolution
    """

    def __init__(
        self,
        diagnoser: Optional[Diagnoser] = None,
        agent_client: Optional[RemoteAgentClient] = None,
    ):
        self._diagnoser = diagnoser or RuleBasedDiagnoser()
        self._agent = agent_client
        self._errors: Dict[UUID, DeploymentError] = {}
        self._lock = threading.Lock()

    def handle_deployment_error(
        self,
        service: str,
        phase: ExecutionPhase,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        *,
        connection_id: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> DeploymentError:
        error_type, severity = classify_error(message)

        error = DeploymentError(
            type=error_type,
            severity=severity,
            phase=phase,
            service=service,
            message=message,
            context=dict(context or {}),
        )

        logger.info(
            f"[errors] {error.id} classified as {error_type.value}/{severity.value} "
            f"(phase={phase.value}, service={service})"
        )

        if connection_id and self._agent:
            error.diagnostics = self.gather_diagnostics(connection_id, auth_token)

        error.analysis = self._diagnoser.diagnose(error)

        with self._lock:
            self._errors[error.id] = error

        return error

    def gather_diagnostics(
        self,
        connection_id: str,
        auth_token: Optional[str] = None,
    ) -> Optional[SystemDiagnostics]:
        """Run the diagnostic command set over SSH. Unreachable commands are skipped."""
        diagnostics = SystemDiagnostics()

        for section, commands in DIAGNOSTIC_COMMANDS.items():
            target = getattr(diagnostics, section)
            for name, command in commands.items():
                try:
                    result = self._agent.call(
                        ServiceName.CREDENTIALS,
                        "execute_ssh_command",
                        {"connection_id": connection_id, "command": command},
                        auth_token,
                        timeout=30,
                    )
                except Exception as e:
                    logger.warning(f"[errors] Failed to gather diagnostics: {e}")
                    return None

                if result.success:
                    target[name] = str(result.result.get("output", ""))
                else:
                    logger.debug(f"[errors] diagnostic '{command}' failed: {result.error}")

        return diagnostics

    # -------------------------
    # QUERIES
    # -------------------------

    def get_active_errors(self) -> List[DeploymentError]:
        with self._lock:
            return [e for e in self._errors.values() if not e.resolved]

    def get_error(self, error_id: UUID) -> Optional[DeploymentError]:
        with self._lock:
            return self._errors.get(error_id)

    def mark_resolved(self, error_id: UUID) -> bool:
        """Resolve a tracked error. Unknown ids return False; repeat calls are no-ops."""
        with self._lock:
            error = self._errors.get(error_id)
        if not error:
            return False
        error.resolve()
        return True

    def get_statistics(self) -> ErrorStatistics:
        with self._lock:
            errors = list(self._errors.values())

        stats = ErrorStatistics(total_errors=len(errors))
        resolution_minutes = []

        for error in errors:
            stats.by_type[error.type.value] = stats.by_type.get(error.type.value, 0) + 1
            stats.by_severity[error.severity.value] = stats.by_severity.get(error.severity.value, 0) + 1

            if error.analysis:
                stats.cost_impact += error.analysis.risk_assessment.cost_impact

            if error.resolved and error.resolved_at:
                stats.resolved_errors += 1
                resolution_minutes.append(
                    (error.resolved_at - error.timestamp).total_seconds() / 60
                )

        if resolution_minutes:
            stats.average_resolution_minutes = sum(resolution_minutes) / len(resolution_minutes)

        return stats
