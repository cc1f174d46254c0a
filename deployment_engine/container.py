#deployment_engine\container.py

"""Dependency injection container - wires all services together."""

from datetime import timedelta

from deployment_engine.config import settings
from deployment_engine.core.events import LoggingEventEmitter, MultiEventEmitter
from deployment_engine.diagnosis.diagnoser import AIDiagnoser, RuleBasedDiagnoser
from deployment_engine.diagnosis.service import ErrorHandlingService
from deployment_engine.infrastructure.agents.client import HttpRemoteAgentClient
from deployment_engine.infrastructure.memory.repository import (
    InMemoryExecutionRepository,
    InMemoryStatusRepository,
)
from deployment_engine.infrastructure.reasoning.client import HttpReasoningClient
from deployment_engine.monitoring.probe import ResourceHealthProbe
from deployment_engine.monitoring.service import StatusMonitoringService
from deployment_engine.orchestrator.deployment_orchestrator import DeploymentOrchestrator
from deployment_engine.recovery.executor import RecoveryExecutor


# ============================================
# REPOSITORIES
# ============================================

execution_repository = InMemoryExecutionRepository()
status_repository = InMemoryStatusRepository()


# ============================================
# EVENTS
# ============================================

emitters = MultiEventEmitter([
    LoggingEventEmitter()
])


# ============================================
# REMOTE CLIENTS
# ============================================

agent_client = HttpRemoteAgentClient(
    agent_urls=settings.agent_urls,
    timeout=settings.agent_request_timeout_seconds,
)

reasoning_client = HttpReasoningClient(
    url=settings.reasoning_url,
    timeout=settings.reasoning_timeout_seconds,
)


# ============================================
# SERVICES
# ============================================

# Error handling (AI diagnosis with rule-based fallback)
error_service = ErrorHandlingService(
    diagnoser=AIDiagnoser(
        reasoning_client,
        fallback=RuleBasedDiagnoser(
            downtime_hourly_cost=settings.downtime_hourly_cost,
            replacement_server_monthly_cost=settings.replacement_server_monthly_cost,
        ),
    ),
    agent_client=agent_client,
)

# Status monitoring
status_monitor = StatusMonitoringService(
    repository=status_repository,
    event_emitter=emitters,
    probe=ResourceHealthProbe(
        cpu_limit=settings.probe_cpu_limit,
        memory_limit=settings.probe_memory_limit,
        disk_limit=settings.probe_disk_limit,
        timeout_seconds=settings.probe_timeout_seconds,
    ),
    penalties=settings.health_penalties(),
    health_check_interval=settings.health_check_interval_seconds,
    zombie_detection_interval=settings.zombie_detection_interval_seconds,
    failed_dwell=timedelta(seconds=settings.zombie_failed_dwell_seconds),
    abandoned_after=timedelta(seconds=settings.zombie_abandoned_seconds),
    zombie_monthly_cost=settings.zombie_assumed_monthly_cost,
)

# Orchestrator
orchestrator = DeploymentOrchestrator(
    repository=execution_repository,
    agent_client=agent_client,
    error_service=error_service,
    recovery_executor=RecoveryExecutor(agent_client),
    monitor=status_monitor,
    event_emitter=emitters,
    max_recovery_attempts=settings.max_recovery_attempts,
    pipeline_timeout_seconds=settings.pipeline_timeout_seconds,
    server_hourly_cost=settings.default_server_hourly_cost,
    server_monthly_cost=settings.default_server_monthly_cost,
)
