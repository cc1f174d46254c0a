# deployment_engine/monitoring/health.py
"""Health score and status level derivation (pure functions)."""

from dataclasses import dataclass
from typing import Iterable, Sequence

from deployment_engine.monitoring.models import IssueSeverity, ProbeStatus, StatusLevel


@dataclass(frozen=True)
class HealthPenalties:
    cpu_threshold: float = 80.0
    cpu_penalty: float = 2.0
    memory_threshold: float = 85.0
    memory_penalty: float = 3.0
    disk_threshold: float = 90.0
    disk_penalty: float = 5.0
    failed_service_penalty: float = 15.0
    probe_fail_penalty: float = 20.0
    probe_timeout_penalty: float = 10.0


DEFAULT_PENALTIES = HealthPenalties()


def resource_health_score(resource, penalties: HealthPenalties = DEFAULT_PENALTIES) -> float:
    """
    Score one resource from 100 down, never below 0.

    Deductions: utilization above each threshold (per percentage point),
    each failed service process, and a failed or timed out health probe.
    """
    score = 100.0

    if resource.cpu_usage > penalties.cpu_threshold:
        score -= (resource.cpu_usage - penalties.cpu_threshold) * penalties.cpu_penalty
    if resource.memory_usage > penalties.memory_threshold:
        score -= (resource.memory_usage - penalties.memory_threshold) * penalties.memory_penalty
    if resource.disk_usage > penalties.disk_threshold:
        score -= (resource.disk_usage - penalties.disk_threshold) * penalties.disk_penalty

    score -= resource.failed_service_count() * penalties.failed_service_penalty

    if resource.health_check_status == ProbeStatus.FAIL:
        score -= penalties.probe_fail_penalty
    elif resource.health_check_status == ProbeStatus.TIMEOUT:
        score -= penalties.probe_timeout_penalty

    return max(0.0, score)


def calculate_health_score(
    resources: Sequence,
    penalties: HealthPenalties = DEFAULT_PENALTIES,
) -> float:
    """Mean of per-resource scores, 100 when nothing is attached."""
    if not resources:
        return 100.0

    total = sum(resource_health_score(r, penalties) for r in resources)
    return min(100.0, max(0.0, total / len(resources)))


def determine_status_level(health_score: float, open_issues: Iterable) -> StatusLevel:
    """First match wins: critical, degraded, warning, healthy."""
    severities = [issue.severity for issue in open_issues]

    if IssueSeverity.CRITICAL in severities or health_score < 30:
        return StatusLevel.CRITICAL
    if IssueSeverity.HIGH in severities or health_score < 60:
        return StatusLevel.DEGRADED
    if severities or health_score < 85:
        return StatusLevel.WARNING
    return StatusLevel.HEALTHY
