#tests\test_status_monitor.py

"""Test the status monitoring service."""

import pytest

from deployment_engine.core.errors import ExecutionNotFound
from deployment_engine.core.models import ExecutionPhase
from deployment_engine.monitoring.models import (
    InfrastructureStatus,
    IssueSeverity,
    ProbeStatus,
    StatusIssue,
    StatusLevel,
    StatusWarning,
    WarningType,
    ZombieReason,
    ZombieRecommendation,
)
from deployment_engine.monitoring.probe import ProbeResult


def server(resource_id="srv-1", **kwargs):
    return InfrastructureStatus(id=resource_id, monthly_cost=24, hourly_cost=0.036, **kwargs)


@pytest.fixture
def status(monitor):
    return monitor.create_deployment_status("dep-1", "ws-1", "user-1", "shop")


class TestPushUpdates:

    def test_created_status(self, status, clock):
        assert status.status == StatusLevel.UNKNOWN
        assert status.phase == ExecutionPhase.INITIALIZING
        assert status.started_at == clock.now
        assert status.status_history[0].details == "Deployment initiated"

    def test_phase_update(self, monitor, status, clock):
        clock.advance(minutes=5)

        monitor.update_deployment_phase("dep-1", ExecutionPhase.ANALYZING_INPUT, "Analyzing", 150)

        assert status.phase == ExecutionPhase.ANALYZING_INPUT
        assert status.progress == 100
        assert status.last_updated == clock.now
        assert status.status == StatusLevel.HEALTHY
        assert status.status_history[-1].details == "Analyzing"

    def test_infrastructure_update(self, monitor, status):
        resource = server(cpu_usage=92.5, memory_usage=90, health_check_status=ProbeStatus.FAIL)

        monitor.update_infrastructure_status("dep-1", [resource, server("srv-2")])

        assert status.total_monthly_cost == 48
        assert status.health_score == pytest.approx(70)
        assert status.status == StatusLevel.WARNING
        assert resource.status == StatusLevel.DEGRADED

    def test_attach_replaces_same_resource(self, monitor, status):
        monitor.attach_infrastructure("dep-1", server())
        monitor.attach_infrastructure("dep-1", server(cpu_usage=95))

        assert len(status.infrastructure) == 1
        assert status.infrastructure[0].cpu_usage == 95

    def test_unknown_deployment(self, monitor):
        with pytest.raises(ExecutionNotFound):
            monitor.update_deployment_phase("nope", ExecutionPhase.ANALYZING_INPUT, "x")


class TestIssues:

    def test_issue_lifecycle(self, monitor, status, emitter):
        issue = StatusIssue(
            severity=IssueSeverity.HIGH,
            type="deployment_error",
            title="Deployment error in provisioning_infrastructure",
            description="boom",
        )

        monitor.add_issue("dep-1", issue)
        assert status.status == StatusLevel.DEGRADED

        assert monitor.resolve_issue("dep-1", issue.id) is True
        assert status.status == StatusLevel.HEALTHY
        assert monitor.resolve_issue("dep-1", issue.id) is False

        assert emitter.types() == ["issue_detected", "issue_resolved"]

    def test_warning(self, monitor, status, emitter):
        monitor.add_warning("dep-1", StatusWarning(
            type=WarningType.COST,
            message="Server oversized",
            recommendation="Downsize",
        ))

        assert len(status.warnings) == 1
        assert emitter.types() == ["warning_added"]


class TestHealthChecks:

    def test_failing_probe_opens_single_issue(self, monitor, status, probe, emitter, clock):
        monitor.update_infrastructure_status("dep-1", [server()])
        probe.results["srv-1"] = ProbeResult(ProbeStatus.FAIL, "nginx down")
        clock.advance(minutes=10)

        monitor.perform_health_checks()
        monitor.perform_health_checks()

        assert len(status.active_issues) == 1
        issue = status.active_issues[0]
        assert issue.type == "infrastructure_health"
        assert issue.severity == IssueSeverity.HIGH
        assert issue.auto_resolvable
        assert status.infrastructure[0].health_check_details == "nginx down"
        assert status.infrastructure[0].last_health_check == clock.now
        assert status.health_score == 80
        assert status.status == StatusLevel.DEGRADED
        assert status.uptime_seconds == 600
        assert emitter.types().count("issue_detected") == 1

    def test_passing_probe_resolves_issue(self, monitor, status, probe):
        monitor.update_infrastructure_status("dep-1", [server()])
        probe.results["srv-1"] = ProbeResult(ProbeStatus.FAIL, "nginx down")
        monitor.perform_health_checks()

        probe.results["srv-1"] = ProbeResult(ProbeStatus.PASS)
        monitor.perform_health_checks()

        assert status.active_issues == []
        assert status.status == StatusLevel.HEALTHY

    def test_health_cycle_does_not_count_as_activity(self, monitor, status, clock):
        monitor.update_infrastructure_status("dep-1", [server()])
        updated = status.last_updated
        clock.advance(hours=1)

        monitor.perform_health_checks()

        assert status.last_updated == updated

    def test_terminal_deployments_are_skipped(self, monitor, status, probe):
        monitor.update_infrastructure_status("dep-1", [server()])
        monitor.update_deployment_phase("dep-1", ExecutionPhase.COMPLETED, "done", 100)

        assert monitor.perform_health_checks() == 0
        assert probe.checked == []

    def test_probe_exception_counts_as_timeout(self, monitor, status, probe):
        monitor.update_infrastructure_status("dep-1", [server()])

        def broken(resource):
            raise ConnectionError("probe crashed")

        probe.check = broken
        monitor.perform_health_checks()

        assert status.infrastructure[0].health_check_status == ProbeStatus.TIMEOUT
        assert status.health_score == 90


class TestZombieDetection:

    def test_failed_deployment_after_dwell(self, monitor, status, clock, emitter):
        monitor.update_infrastructure_status("dep-1", [server()])
        monitor.update_deployment_phase("dep-1", ExecutionPhase.FAILED, "failed")

        clock.advance(minutes=30)
        assert monitor.detect_zombie_servers() == []

        clock.advance(minutes=31)
        candidates = monitor.detect_zombie_servers()

        assert len(candidates) == 1
        candidate = candidates[0]
        assert candidate.reason == ZombieReason.DEPLOYMENT_FAILED
        assert candidate.confidence == 0.9
        assert candidate.recommendation == ZombieRecommendation.TERMINATE
        assert candidate.monthly_cost == 24
        assert emitter.types()[-1] == "zombie_servers_detected"

    def test_abandoned_deployment(self, monitor, status, clock):
        """Stuck mid-pipeline for three hours, two servers attached."""
        monitor.update_infrastructure_status("dep-1", [server("srv-1"), server("srv-2")])
        monitor.update_deployment_phase("dep-1", ExecutionPhase.EXECUTING_DEPLOYMENT, "deploying")
        clock.advance(hours=3)

        candidates = monitor.get_zombie_candidates()

        assert sorted(c.resource_id for c in candidates) == ["srv-1", "srv-2"]
        assert all(c.reason == ZombieReason.DEPLOYMENT_ABANDONED for c in candidates)
        assert all(c.confidence == 0.7 for c in candidates)
        assert all(c.recommendation == ZombieRecommendation.INVESTIGATE for c in candidates)

    def test_failed_deployment_is_not_reported_as_abandoned(self, monitor, status, clock):
        monitor.update_infrastructure_status("dep-1", [server()])
        monitor.update_deployment_phase("dep-1", ExecutionPhase.FAILED, "failed")
        clock.advance(hours=5)

        candidates = monitor.get_zombie_candidates()

        assert [c.reason for c in candidates] == [ZombieReason.DEPLOYMENT_FAILED]

    def test_completed_deployment_is_never_a_zombie(self, monitor, status, clock):
        monitor.update_infrastructure_status("dep-1", [server()])
        monitor.update_deployment_phase("dep-1", ExecutionPhase.COMPLETED, "done", 100)
        clock.advance(days=30)

        assert monitor.get_zombie_candidates() == []

    def test_no_event_without_candidates(self, monitor, status, emitter):
        monitor.detect_zombie_servers()
        assert "zombie_servers_detected" not in emitter.types()

    def test_querying_candidates_emits_nothing(self, monitor, status, clock, emitter):
        monitor.update_infrastructure_status("dep-1", [server()])
        monitor.update_deployment_phase("dep-1", ExecutionPhase.FAILED, "failed")
        clock.advance(hours=2)

        assert len(monitor.get_zombie_candidates()) == 1
        assert len(monitor.get_zombie_candidates()) == 1
        assert "zombie_servers_detected" not in emitter.types()


class TestQueries:

    def test_filters(self, monitor):
        monitor.create_deployment_status("dep-1", "ws-1", "user-1", "shop")
        monitor.create_deployment_status("dep-2", "ws-1", "user-2", "blog")
        monitor.create_deployment_status("dep-3", "ws-2", "user-1", "api")

        assert len(monitor.get_all_statuses()) == 3
        assert {s.deployment_id for s in monitor.get_all_statuses(workspace_id="ws-1")} == {"dep-1", "dep-2"}
        assert {s.deployment_id for s in monitor.get_all_statuses(user_id="user-1")} == {"dep-1", "dep-3"}
        assert [s.deployment_id for s in monitor.get_all_statuses("ws-1", "user-2")] == ["dep-2"]
        assert monitor.get_deployment_status("missing") is None

    def test_summary(self, monitor, clock):
        monitor.create_deployment_status("dep-1", "ws-1", "user-1", "shop")
        monitor.create_deployment_status("dep-2", "ws-1", "user-1", "blog")
        monitor.update_infrastructure_status("dep-1", [server("srv-1")])
        monitor.update_infrastructure_status(
            "dep-2", [server("srv-2", health_check_status=ProbeStatus.FAIL)]
        )
        monitor.update_deployment_phase("dep-2", ExecutionPhase.FAILED, "failed")
        clock.advance(minutes=90)

        summary = monitor.get_status_summary()

        assert summary.total_deployments == 2
        assert summary.by_status == {"healthy": 1, "warning": 1}
        assert summary.total_monthly_cost == 48
        assert summary.average_health_score == pytest.approx(90)
        assert summary.zombie_server_count == 1
        assert summary.potential_savings == 24


class TestTimers:

    def test_start_and_stop(self, monitor):
        monitor.health_check_interval = 0.01
        monitor.zombie_detection_interval = 0.01

        monitor.start()
        monitor.stop()

        assert monitor._threads == []
