#tests\test_models.py

"""Test execution and error domain models."""

from datetime import datetime, timezone
from uuid import uuid4

from deployment_engine.core.models import DeploymentExecution, DeploymentRequest, ExecutionPhase
from deployment_engine.diagnosis.models import (
    DeploymentError,
    ErrorSeverity,
    ErrorType,
    RecoveryAttempt,
    RecoveryStrategy,
)
from deployment_engine.orchestrator.pipeline import (
    PIPELINE,
    deploy_args,
    deployment_strategy,
    extract_app_name,
)

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_execution():
    return DeploymentExecution(
        execution_id=uuid4(),
        request_id="req-1",
        workspace_id="ws-1",
        user_id="user-1",
        steps=[definition.new_step() for definition in PIPELINE],
    )


class TestExecutionStep:

    def test_fail_then_succeed(self):
        step = PIPELINE[0].new_step()

        step.begin(T0)
        step.fail("boom", T0)
        assert step.retry_count == 1
        assert step.error == "boom"
        assert step.success is False

        step.begin(T0)
        step.succeed(T0)
        assert step.success is True
        assert step.error is None
        assert step.duration_ms == 0


class TestDeploymentExecution:

    def test_progress_counts_completed_steps(self):
        execution = make_execution()

        execution.step_for(ExecutionPhase.ANALYZING_INPUT).succeed()
        execution.step_for(ExecutionPhase.PROVISIONING_INFRASTRUCTURE).succeed()

        assert execution.recompute_progress() == 40
        assert len(execution.completed_steps) == 2
        assert len(execution.remaining_steps) == 3

    def test_connection_id_comes_from_server(self):
        execution = make_execution()
        assert execution.connection_id is None

        execution.infrastructure_provisioning = {"server": {"id": 4242, "ip_address": "203.0.113.10"}}

        assert execution.connection_id == "4242"

    def test_to_dict(self):
        data = make_execution().to_dict()

        assert data["phase"] == "initializing"
        assert data["status"] == "pending"
        assert len(data["steps"]) == 5


class TestDeploymentError:

    def make_error(self):
        return DeploymentError(
            type=ErrorType.SSH_CONNECTION_FAILURE,
            severity=ErrorSeverity.HIGH,
            phase=ExecutionPhase.EXECUTING_DEPLOYMENT,
            service="deployment",
            message="Host key verification failed",
        )

    def test_resolve_is_idempotent(self):
        error = self.make_error()

        assert error.resolve(T0) is True
        assert error.resolve() is False
        assert error.resolved_at == T0

    def test_record_attempt(self):
        error = self.make_error()
        attempt = RecoveryAttempt(
            strategy=RecoveryStrategy.PROVISION_NEW_SERVER,
            actions=(),
            success=False,
            duration_ms=12,
            outcome="provider refused",
        )

        error.record_attempt(attempt)

        assert error.to_dict()["recovery_attempts"][0]["strategy"] == "provision_new_server"


class TestPipelineHelpers:

    def test_extract_app_name(self):
        assert extract_app_name("https://github.com/acme/Shop.git") == "shop"
        assert extract_app_name("https://github.com/acme/api/") == "api"
        assert extract_app_name(None) == "deployment"

    def test_simplified_strategy_drops_containers_and_checks(self):
        execution = make_execution()
        execution.repository_analysis = {"build_files": ["Dockerfile"]}

        assert deployment_strategy(execution)["containerization"] == "docker"

        execution.simplified = True
        strategy = deployment_strategy(execution)

        assert strategy["containerization"] == "none"
        assert strategy["health_checks"] == []

    def test_deploy_args_target_the_server(self, deployment_request):
        execution = make_execution()
        execution.infrastructure_provisioning = {"server": {"id": "srv-1", "ip_address": "203.0.113.10"}}
        execution.credential_result = {"key": {"id": "key-1"}}

        args = deploy_args(execution, deployment_request)

        assert args["infrastructure_targets"] == [{
            "id": "srv-1",
            "host": "203.0.113.10",
            "ssh_key_id": "key-1",
        }]

    def test_deploy_args_forward_request_parameters(self):
        request = DeploymentRequest(
            request_id="req-2",
            workspace_id="ws-1",
            user_id="user-1",
            repository_url="https://github.com/acme/Shop.git",
            parameters={"env": {"NODE_ENV": "production"}, "port": 8080},
        )
        execution = make_execution()

        args = deploy_args(execution, request)

        assert args["parameters"] == {"env": {"NODE_ENV": "production"}, "port": 8080}
        assert args["parameters"] is not request.parameters
