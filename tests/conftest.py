#tests\conftest.py

"""Pytest configuration and fixtures."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from deployment_engine.core.agents import AgentCallResult, RemoteAgentClient
from deployment_engine.core.events import RecordingEventEmitter
from deployment_engine.core.models import DeploymentRequest
from deployment_engine.diagnosis.diagnoser import Diagnoser, RuleBasedDiagnoser
from deployment_engine.diagnosis.models import AIErrorAnalysis
from deployment_engine.diagnosis.service import ErrorHandlingService
from deployment_engine.infrastructure.memory.repository import (
    InMemoryExecutionRepository,
    InMemoryStatusRepository,
)
from deployment_engine.monitoring.models import ProbeStatus
from deployment_engine.monitoring.probe import HealthProbe, ProbeResult
from deployment_engine.monitoring.service import StatusMonitoringService
from deployment_engine.orchestrator.deployment_orchestrator import DeploymentOrchestrator
from deployment_engine.recovery.executor import RecoveryExecutor


T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


DEFAULT_RESULTS = {
    ("repository_analysis", "analyze_repository"): {
        "tech_stack": {"framework": "express", "primary_language": "javascript"},
        "build_files": ["package.json"],
        "deployment_config": {"port": 3000},
    },
    ("infrastructure", "provision_infrastructure"): {
        "server": {"id": "srv-1", "ip_address": "203.0.113.10", "region": "nyc3", "name": "shop-web"},
    },
    ("credentials", "generate_ssh_key"): {"key": {"id": "key-1"}},
    ("deployment", "execute_deployment_plan"): {"execution": {"id": "dep-1", "status": "running"}},
    ("deployment", "monitor_deployment"): {"monitoring": {"status": "healthy"}},
    ("credentials", "execute_ssh_command"): {"output": ""},
    ("credentials", "test_ssh_connection"): {"connected": True},
}


# ============================================
# FAKES
# ============================================

class ScriptedAgentClient(RemoteAgentClient):
    """
    Remote agent fake.

    Each (service, operation) answers from its script in order; the last
    scripted result repeats. Unscripted operations succeed with a canned result.
    """

    def __init__(self):
        self.calls = []
        self._scripts = {}
        self._gates = {}
        self._lock = threading.Lock()

    def script(self, service, operation, *results):
        self._scripts[(service, operation)] = list(results)

    def fail(self, service, operation, message):
        self.script(service, operation, AgentCallResult.failed(message))

    def hold(self, service, operation):
        """Block the operation until the returned release event is set."""
        entered, release = threading.Event(), threading.Event()
        self._gates[(service, operation)] = (entered, release)
        return entered, release

    def call(self, service, operation, args, auth_token=None, timeout=None):
        key = (service, operation)
        with self._lock:
            self.calls.append((service, operation, args))
            script = self._scripts.get(key)
            if script:
                result = script.pop(0) if len(script) > 1 else script[0]
            else:
                result = AgentCallResult.ok(dict(DEFAULT_RESULTS.get(key, {})))

        gate = self._gates.get(key)
        if gate:
            entered, release = gate
            entered.set()
            release.wait(5)

        return result

    def operations(self):
        with self._lock:
            return [f"{service}.{operation}" for service, operation, _ in self.calls]

    def count(self, service, operation):
        return self.operations().count(f"{service}.{operation}")


class StubDiagnoser(Diagnoser):
    """Rule-based analysis without recommended actions, records what it saw."""

    def __init__(self):
        self.seen = []
        self._rules = RuleBasedDiagnoser()

    def diagnose(self, error):
        self.seen.append(error)
        analysis = self._rules.diagnose(error)
        return AIErrorAnalysis(
            root_cause=analysis.root_cause,
            confidence=analysis.confidence,
            reasoning="stub",
            recommended_actions=[],
            estimated_repair_minutes=analysis.estimated_repair_minutes,
            risk_assessment=analysis.risk_assessment,
            source="stub",
        )


class StaticProbe(HealthProbe):
    """Probe answering from a resource id -> ProbeResult map (default pass)."""

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.checked = []

    def check(self, resource):
        self.checked.append(resource.id)
        return self.results.get(resource.id, ProbeResult(ProbeStatus.PASS))


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================
# FIXTURES
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def emitter():
    return RecordingEventEmitter()


@pytest.fixture
def agent():
    return ScriptedAgentClient()


@pytest.fixture
def diagnoser():
    return StubDiagnoser()


@pytest.fixture
def probe():
    return StaticProbe()


@pytest.fixture
def status_repository():
    return InMemoryStatusRepository()


@pytest.fixture
def execution_repository():
    return InMemoryExecutionRepository()


@pytest.fixture
def monitor(status_repository, emitter, probe, clock):
    return StatusMonitoringService(
        repository=status_repository,
        event_emitter=emitter,
        probe=probe,
        clock=clock,
    )


@pytest.fixture
def error_service(diagnoser, agent):
    return ErrorHandlingService(diagnoser=diagnoser, agent_client=agent)


@pytest.fixture
def orchestrator(execution_repository, agent, error_service, monitor, emitter):
    return DeploymentOrchestrator(
        repository=execution_repository,
        agent_client=agent,
        error_service=error_service,
        recovery_executor=RecoveryExecutor(agent),
        monitor=monitor,
        event_emitter=emitter,
    )


@pytest.fixture
def deployment_request():
    return DeploymentRequest(
        request_id="req-1",
        workspace_id="ws-1",
        user_id="user-1",
        repository_url="https://github.com/acme/Shop.git",
        auth_token="token-123",
    )
