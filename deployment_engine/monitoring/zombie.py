# deployment_engine/monitoring/zombie.py
"""Zombie resource detection over a snapshot of deployment statuses."""

from datetime import datetime, timedelta
from typing import Iterable, List

from deployment_engine.core.models import ExecutionPhase
from deployment_engine.monitoring.models import (
    DeploymentStatus,
    ZombieReason,
    ZombieRecommendation,
    ZombieServerCandidate,
)


def detect_zombie_candidates(
    statuses: Iterable[DeploymentStatus],
    now: datetime,
    *,
    failed_dwell: timedelta = timedelta(hours=1),
    abandoned_after: timedelta = timedelta(hours=2),
) -> List[ZombieServerCandidate]:
    """
    One candidate per attached resource of:
    - failed deployments idle longer than failed_dwell (terminate)
    - non-terminal deployments idle longer than abandoned_after (investigate)

    Completed deployments never produce candidates.
    """
    candidates = []

    for status in statuses:
        with status.lock:
            idle = now - status.last_updated
            resources = list(status.infrastructure)
            phase = status.phase

            if phase == ExecutionPhase.FAILED:
                if resources and idle > failed_dwell:
                    reason = ZombieReason.DEPLOYMENT_FAILED
                    confidence = 0.9
                    recommendation = ZombieRecommendation.TERMINATE
                else:
                    continue
            elif phase != ExecutionPhase.COMPLETED and idle > abandoned_after:
                reason = ZombieReason.DEPLOYMENT_ABANDONED
                confidence = 0.7
                recommendation = ZombieRecommendation.INVESTIGATE
            else:
                continue

            for resource in resources:
                candidates.append(ZombieServerCandidate(
                    resource_id=resource.id,
                    deployment_id=status.deployment_id,
                    created_at=resource.created_at,
                    last_activity=status.last_updated,
                    monthly_cost=resource.monthly_cost,
                    reason=reason,
                    confidence=confidence,
                    recommendation=recommendation,
                ))

    return candidates
