# deployment_engine/monitoring/service.py
"""
Status Monitoring Service - tracks health, cost and abandonment of deployments.

Two update paths:
- push: the orchestrator reports phases, infrastructure and issues
- pull: a timer thread probes every non-terminal deployment's resources

A second timer thread runs zombie detection.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional
from uuid import UUID

from deployment_engine.core.errors import ExecutionNotFound
from deployment_engine.core.events import EventEmitter, NullEventEmitter
from deployment_engine.core.events_model import DeploymentEvent
from deployment_engine.core.models import ExecutionPhase, utcnow
from deployment_engine.core.repository import StatusRepository
from deployment_engine.monitoring.health import (
    DEFAULT_PENALTIES,
    HealthPenalties,
    calculate_health_score,
    determine_status_level,
    resource_health_score,
)
from deployment_engine.monitoring.models import (
    DeploymentStatus,
    InfrastructureStatus,
    IssueSeverity,
    ProbeStatus,
    StatusHistoryEntry,
    StatusIssue,
    StatusSummary,
    StatusWarning,
    ZombieServerCandidate,
)
from deployment_engine.monitoring.probe import HealthProbe, ProbeResult, ResourceHealthProbe
from deployment_engine.monitoring.zombie import detect_zombie_candidates

logger = logging.getLogger(__name__)


INFRASTRUCTURE_HEALTH_ISSUE = "infrastructure_health"


class StatusMonitoringService:
    """Keeps one DeploymentStatus per deployment and reconciles it on timers."""

    def __init__(
        self,
        repository: StatusRepository,
        event_emitter: Optional[EventEmitter] = None,
        *,
        probe: Optional[HealthProbe] = None,
        penalties: HealthPenalties = DEFAULT_PENALTIES,
        health_check_interval: float = 60.0,
        zombie_detection_interval: float = 300.0,
        failed_dwell: timedelta = timedelta(hours=1),
        abandoned_after: timedelta = timedelta(hours=2),
        zombie_monthly_cost: float = 24.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repo = repository
        self._emitter = event_emitter or NullEventEmitter()
        self._probe = probe or ResourceHealthProbe()
        self._penalties = penalties
        self.health_check_interval = health_check_interval
        self.zombie_detection_interval = zombie_detection_interval
        self.failed_dwell = failed_dwell
        self.abandoned_after = abandoned_after
        self.zombie_monthly_cost = zombie_monthly_cost
        self._clock = clock

        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []

    # -------------------------
    # TIMERS
    # -------------------------

    def start(self) -> None:
        """Start the health check and zombie detection threads."""
        if self._threads:
            return

        logger.info("[monitor] 🏥 Status monitor started")
        logger.info(f"[monitor] Health check interval: {self.health_check_interval}s")
        logger.info(f"[monitor] Zombie detection interval: {self.zombie_detection_interval}s")

        self._stop_event.clear()
        self._threads = [
            threading.Thread(
                target=self._timer_loop,
                args=(self.health_check_interval, self.perform_health_checks),
                name="status-health-checks",
                daemon=True,
            ),
            threading.Thread(
                target=self._timer_loop,
                args=(self.zombie_detection_interval, self.detect_zombie_servers),
                name="status-zombie-detection",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join()
        self._threads = []
        logger.info("[monitor] Status monitor stopped")

    def _timer_loop(self, interval: float, cycle: Callable[[], object]) -> None:
        while not self._stop_event.wait(interval):
            try:
                cycle()
            except Exception as e:
                logger.error(f"[monitor] Error in {cycle.__name__}: {e}", exc_info=True)

    # -------------------------
    # PUSH PATH
    # -------------------------

    def create_deployment_status(
        self,
        deployment_id: str,
        workspace_id: str,
        user_id: str,
        name: str,
    ) -> DeploymentStatus:
        now = self._clock()
        status = DeploymentStatus(
            deployment_id=deployment_id,
            workspace_id=workspace_id,
            user_id=user_id,
            name=name,
            started_at=now,
            last_updated=now,
        )
        status.status_history.append(StatusHistoryEntry(
            phase=status.phase,
            status=status.status,
            details="Deployment initiated",
            timestamp=now,
        ))

        self._repo.create(status)
        logger.info(f"[monitor] tracking deployment {deployment_id} ({name})")
        return status

    def update_deployment_phase(
        self,
        deployment_id: str,
        phase: ExecutionPhase,
        details: str,
        progress: Optional[int] = None,
    ) -> DeploymentStatus:
        status = self._require_status(deployment_id)

        with status.lock:
            now = self._clock()
            status.phase = phase
            status.current_step = details
            status.last_updated = now
            if progress is not None:
                status.progress = max(0, min(100, progress))

            self._recompute(status, now)
            status.status_history.append(StatusHistoryEntry(
                phase=phase,
                status=status.status,
                details=details,
                timestamp=now,
            ))

        return status

    def update_infrastructure_status(
        self,
        deployment_id: str,
        resources: Iterable[InfrastructureStatus],
    ) -> DeploymentStatus:
        """Replace the attached resource list."""
        status = self._require_status(deployment_id)

        with status.lock:
            now = self._clock()
            status.infrastructure = list(resources)
            status.last_updated = now
            self._recompute(status, now)

        return status

    def attach_infrastructure(
        self,
        deployment_id: str,
        resource: InfrastructureStatus,
    ) -> DeploymentStatus:
        """Add one resource (replacing any record with the same id)."""
        status = self._require_status(deployment_id)

        with status.lock:
            resources = [r for r in status.infrastructure if r.id != resource.id]
            resources.append(resource)

        return self.update_infrastructure_status(deployment_id, resources)

    def add_issue(self, deployment_id: str, issue: StatusIssue) -> StatusIssue:
        status = self._require_status(deployment_id)
        self._add_issue(status, issue, touch=True)
        return issue

    def resolve_issue(self, deployment_id: str, issue_id: UUID) -> bool:
        status = self._require_status(deployment_id)
        return self._resolve_issue(status, issue_id, touch=True)

    def add_warning(self, deployment_id: str, warning: StatusWarning) -> StatusWarning:
        status = self._require_status(deployment_id)

        with status.lock:
            status.warnings.append(warning)
            status.last_updated = self._clock()

        self._emit(DeploymentEvent.warning_added(deployment_id, warning))
        return warning

    def _add_issue(self, status: DeploymentStatus, issue: StatusIssue, *, touch: bool) -> None:
        with status.lock:
            now = self._clock()
            status.active_issues.append(issue)
            if touch:
                status.last_updated = now
            self._recompute(status, now)

        logger.info(
            f"[monitor] issue detected on {status.deployment_id}: "
            f"{issue.severity.value} {issue.title}"
        )
        self._emit(DeploymentEvent.issue_detected(status.deployment_id, issue))

    def _resolve_issue(self, status: DeploymentStatus, issue_id: UUID, *, touch: bool) -> bool:
        with status.lock:
            issue = next((i for i in status.active_issues if i.id == issue_id), None)
            if issue is None:
                return False

            now = self._clock()
            status.active_issues = [i for i in status.active_issues if i.id != issue_id]
            if touch:
                status.last_updated = now
            self._recompute(status, now)

        self._emit(DeploymentEvent.issue_resolved(status.deployment_id, issue))
        return True

    # -------------------------
    # PULL PATH
    # -------------------------

    def perform_health_checks(self, now: Optional[datetime] = None) -> int:
        """Probe every non-terminal deployment. Returns how many were checked."""
        checked = 0

        for status in self._repo.list():
            if status.is_terminal():
                continue
            try:
                self.check_deployment_health(status, now)
                checked += 1
            except Exception as e:
                logger.warning(f"[monitor] Health check failed for {status.deployment_id}: {e}")

        if checked:
            logger.debug(f"[monitor] health-checked {checked} deployment(s)")
        return checked

    def check_deployment_health(
        self,
        status: DeploymentStatus,
        now: Optional[datetime] = None,
    ) -> DeploymentStatus:
        now = now or self._clock()

        with status.lock:
            status.uptime_seconds = max(0, int((now - status.started_at).total_seconds()))
            resources = list(status.infrastructure)

        for resource in resources:
            try:
                result = self._probe.check(resource)
            except Exception as e:
                result = ProbeResult(ProbeStatus.TIMEOUT, str(e))

            with status.lock:
                resource.last_health_check = now
                resource.health_check_status = result.status
                resource.health_check_details = result.details

            if result.status == ProbeStatus.FAIL:
                if not self._open_health_issue(status, resource.id):
                    self._add_issue(status, StatusIssue(
                        severity=IssueSeverity.HIGH,
                        type=INFRASTRUCTURE_HEALTH_ISSUE,
                        title=f"Infrastructure health check failed: {resource.id}",
                        description=result.details or "Health check returned failure",
                        affected_components=(resource.id,),
                        mitigation_steps=(
                            "Restart services",
                            "Check system resources",
                            "Verify network connectivity",
                        ),
                        auto_resolvable=True,
                        detected_at=now,
                    ), touch=False)
            elif result.status == ProbeStatus.PASS:
                issue = self._open_health_issue(status, resource.id)
                if issue and issue.auto_resolvable:
                    self._resolve_issue(status, issue.id, touch=False)

        with status.lock:
            self._recompute(status, now)

        return status

    def _open_health_issue(self, status: DeploymentStatus, resource_id: str) -> Optional[StatusIssue]:
        with status.lock:
            for issue in status.active_issues:
                if issue.type == INFRASTRUCTURE_HEALTH_ISSUE and resource_id in issue.affected_components:
                    return issue
        return None

    def _recompute(self, status: DeploymentStatus, now: datetime) -> None:
        """Health score, per-resource level, cost and overall level. Caller holds the lock."""
        for resource in status.infrastructure:
            resource.status = determine_status_level(
                resource_health_score(resource, self._penalties), []
            )

        status.health_score = calculate_health_score(status.infrastructure, self._penalties)
        status.total_monthly_cost = sum(r.monthly_cost for r in status.infrastructure)

        previous = status.status
        status.status = determine_status_level(status.health_score, status.active_issues)

        if status.status != previous:
            status.status_history.append(StatusHistoryEntry(
                phase=status.phase,
                status=status.status,
                details=f"Status changed from {previous.value} to {status.status.value}",
                timestamp=now,
            ))

    # -------------------------
    # ZOMBIES
    # -------------------------

    def detect_zombie_servers(self, now: Optional[datetime] = None) -> List[ZombieServerCandidate]:
        candidates = self._detect(self._repo.list(), now)

        if candidates:
            logger.warning(f"[monitor] 🧟 {len(candidates)} zombie server candidate(s) detected")
            self._emit(DeploymentEvent.zombie_servers_detected(candidates))

        return candidates

    def get_zombie_candidates(self, now: Optional[datetime] = None) -> List[ZombieServerCandidate]:
        """Current candidates, without emitting an event."""
        return self._detect(self._repo.list(), now)

    def _detect(
        self,
        statuses: Iterable[DeploymentStatus],
        now: Optional[datetime],
    ) -> List[ZombieServerCandidate]:
        return detect_zombie_candidates(
            statuses,
            now or self._clock(),
            failed_dwell=self.failed_dwell,
            abandoned_after=self.abandoned_after,
        )

    # -------------------------
    # QUERIES
    # -------------------------

    def get_deployment_status(self, deployment_id: str) -> Optional[DeploymentStatus]:
        return self._repo.get(deployment_id)

    def get_all_statuses(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[DeploymentStatus]:
        return self._repo.list(workspace_id=workspace_id, user_id=user_id)

    def get_status_summary(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> StatusSummary:
        statuses = self.get_all_statuses(workspace_id, user_id)
        summary = StatusSummary(total_deployments=len(statuses))

        scores = []
        for status in statuses:
            with status.lock:
                level = status.status.value
                summary.by_status[level] = summary.by_status.get(level, 0) + 1
                summary.total_monthly_cost += status.total_monthly_cost
                scores.append(status.health_score)

        if scores:
            summary.average_health_score = sum(scores) / len(scores)

        zombies = {c.resource_id for c in self._detect(statuses, now)}
        summary.zombie_server_count = len(zombies)
        summary.potential_savings = len(zombies) * self.zombie_monthly_cost

        return summary

    def _require_status(self, deployment_id: str) -> DeploymentStatus:
        status = self._repo.get(deployment_id)
        if not status:
            raise ExecutionNotFound(f"No status for deployment {deployment_id}")
        return status

    def _emit(self, event: DeploymentEvent) -> None:
        try:
            self._emitter.emit([event])
        except Exception as e:
            logger.warning(f"[monitor] event {event.event_type} not delivered: {e}")
