#tests\test_health.py

"""Test health scoring and status levels."""

import pytest

from deployment_engine.monitoring.health import (
    HealthPenalties,
    calculate_health_score,
    determine_status_level,
    resource_health_score,
)
from deployment_engine.monitoring.models import (
    InfrastructureStatus,
    IssueSeverity,
    ProbeStatus,
    ServiceState,
    ServiceStatus,
    StatusIssue,
    StatusLevel,
)


def issue(severity):
    return StatusIssue(severity=severity, type="test", title="t", description="d")


class TestHealthScore:

    def test_no_resources_is_perfect(self):
        assert calculate_health_score([]) == 100

    def test_idle_resource_is_perfect(self):
        assert calculate_health_score([InfrastructureStatus(id="srv-1")]) == 100

    def test_degraded_server(self):
        """cpu 92.5, memory 90, failing probe: 100 - 25 - 15 - 20."""
        resource = InfrastructureStatus(
            id="srv-1",
            cpu_usage=92.5,
            memory_usage=90,
            health_check_status=ProbeStatus.FAIL,
        )

        score = calculate_health_score([resource])

        assert score == pytest.approx(40)
        assert determine_status_level(score, []) == StatusLevel.DEGRADED

    def test_failed_services_and_timeout(self):
        resource = InfrastructureStatus(
            id="srv-1",
            services=[
                ServiceStatus(name="nginx", status=ServiceState.FAILED),
                ServiceStatus(name="app", status=ServiceState.RUNNING),
            ],
            health_check_status=ProbeStatus.TIMEOUT,
        )

        assert resource_health_score(resource) == pytest.approx(75)

    def test_score_never_negative(self):
        resource = InfrastructureStatus(
            id="srv-1",
            cpu_usage=100,
            memory_usage=100,
            disk_usage=100,
            health_check_status=ProbeStatus.FAIL,
        )

        assert resource_health_score(resource) == 0
        assert calculate_health_score([resource]) == 0

    def test_mean_over_resources(self):
        healthy = InfrastructureStatus(id="a")
        failing = InfrastructureStatus(id="b", health_check_status=ProbeStatus.FAIL)

        assert calculate_health_score([healthy, failing]) == pytest.approx(90)

    def test_disk_usage_lowers_score(self):
        base = InfrastructureStatus(id="a", disk_usage=90)
        fuller = InfrastructureStatus(id="b", disk_usage=95)

        assert resource_health_score(fuller) < resource_health_score(base)

    def test_custom_penalties(self):
        resource = InfrastructureStatus(id="a", health_check_status=ProbeStatus.FAIL)
        penalties = HealthPenalties(probe_fail_penalty=50)

        assert resource_health_score(resource, penalties) == 50


class TestStatusLevel:

    @pytest.mark.parametrize("score, expected", [
        (100, StatusLevel.HEALTHY),
        (85, StatusLevel.HEALTHY),
        (84.9, StatusLevel.WARNING),
        (60, StatusLevel.WARNING),
        (59.9, StatusLevel.DEGRADED),
        (30, StatusLevel.DEGRADED),
        (29.9, StatusLevel.CRITICAL),
    ])
    def test_score_thresholds(self, score, expected):
        assert determine_status_level(score, []) == expected

    def test_issues_override_score(self):
        assert determine_status_level(100, [issue(IssueSeverity.CRITICAL)]) == StatusLevel.CRITICAL
        assert determine_status_level(100, [issue(IssueSeverity.HIGH)]) == StatusLevel.DEGRADED
        assert determine_status_level(100, [issue(IssueSeverity.LOW)]) == StatusLevel.WARNING
