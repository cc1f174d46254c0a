# deployment_engine/recovery/executor.py
"""Recovery executor - runs a strategy's actions and verifies the result."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from deployment_engine.core.agents import RemoteAgentClient, ServiceName
from deployment_engine.core.errors import AgentCallError, RecoveryActionError
from deployment_engine.core.models import (
    DeploymentExecution,
    DeploymentRequest,
    ExecutionPhase,
)
from deployment_engine.diagnosis.models import (
    DeploymentError,
    ErrorType,
    RecoveryAction,
    RecoveryAttempt,
    RecoveryStrategy,
)
from deployment_engine.orchestrator.pipeline import (
    credential_args,
    deploy_args,
    phase_index,
    provision_args,
)

logger = logging.getLogger(__name__)


CLEAR_PACKAGE_LOCKS = (
    "sudo killall apt apt-get dpkg || true; "
    "sudo rm -f /var/lib/dpkg/lock-frontend /var/lib/dpkg/lock || true"
)

DPKG_LOCK_PATH = "/var/lib/dpkg/lock"


def clears_package_locks(action: RecoveryAction) -> bool:
    return DPKG_LOCK_PATH in (action.command or "")


@dataclass
class RecoveryOutcome:
    """Attempt record plus where the pipeline should resume."""
    attempt: RecoveryAttempt
    resume_phase: Optional[ExecutionPhase] = None
    error_message: Optional[str] = None
    provisioned: bool = False

    @property
    def success(self) -> bool:
        return self.attempt.success


class RecoveryCancelled(RecoveryActionError):
    pass


class RecoveryExecutor:
    """
    Executes one recovery attempt.

    Steps:
    1. Run the diagnosis' recommended actions in order, stopping at the first failure
    2. Run the strategy's own operations (clear locks, new server, simplified deploy)
    3. Run the error type's verification check
    """

    def __init__(self, agent_client: RemoteAgentClient):
        self._agent = agent_client

    def execute(
        self,
        strategy: RecoveryStrategy,
        error: DeploymentError,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        failed_phase: ExecutionPhase,
        is_cancelled: Callable[[], bool] = lambda: False,
    ) -> RecoveryOutcome:
        started = time.monotonic()
        performed: List[RecoveryAction] = []
        resume_phase = None
        provisioned = False
        error_message = None

        logger.info(
            f"[recovery] {execution.execution_id} strategy={strategy.value} "
            f"error={error.type.value} failed_phase={failed_phase.value}"
        )

        try:
            actions = error.analysis.recommended_actions if error.analysis else []
            for action in actions:
                self._check_cancelled(is_cancelled)
                self._run_action(action, execution, request)
                performed.append(action)

            self._check_cancelled(is_cancelled)
            resume_phase, provisioned = self._apply_strategy(
                strategy, execution, request, failed_phase, performed
            )

            self._check_cancelled(is_cancelled)
            success, outcome = self.verify(error, execution, request)
            if not success:
                error_message = outcome
                resume_phase = None

        except (RecoveryActionError, AgentCallError) as e:
            success = False
            outcome = str(e)
            error_message = str(e)
            resume_phase = None

        except Exception as e:
            logger.error(f"[recovery] {execution.execution_id} unexpected failure: {e}", exc_info=True)
            success = False
            outcome = f"Recovery failed: {e}"
            error_message = str(e)
            resume_phase = None

        attempt = RecoveryAttempt(
            strategy=strategy,
            actions=tuple(performed),
            success=success,
            duration_ms=int((time.monotonic() - started) * 1000),
            outcome=outcome,
        )

        if success:
            logger.info(f"[recovery] ✅ {execution.execution_id} {outcome}")
        else:
            logger.warning(f"[recovery] ❌ {execution.execution_id} {outcome}")

        return RecoveryOutcome(
            attempt=attempt,
            resume_phase=resume_phase,
            error_message=error_message,
            provisioned=provisioned,
        )

    # -------------------------
    # ACTIONS
    # -------------------------

    def _run_action(
        self,
        action: RecoveryAction,
        execution: DeploymentExecution,
        request: DeploymentRequest,
    ) -> None:
        connection_id = execution.connection_id

        if not action.command or not connection_id:
            logger.debug(f"[recovery] skipping action '{action.description}' (nothing to run)")
            return

        host = execution.server.get("ip_address") or ""
        command = action.command.replace("{host}", host)

        logger.info(f"[recovery] executing action: {action.description}")
        result = self._agent.call(
            ServiceName.CREDENTIALS,
            "execute_ssh_command",
            {"connection_id": connection_id, "command": command},
            request.auth_token,
            timeout=action.timeout_seconds,
        )

        if not result.success:
            raise RecoveryActionError(
                f"Failed at step: {action.description} - {result.error}"
            )

    def _call(
        self,
        service: str,
        operation: str,
        args: Dict[str, Any],
        request: DeploymentRequest,
    ) -> Dict[str, Any]:
        result = self._agent.call(service, operation, args, request.auth_token)
        if not result.success:
            raise AgentCallError(service, operation, result.error or f"{operation} failed")
        return result.result

    # -------------------------
    # STRATEGIES
    # -------------------------

    def _apply_strategy(
        self,
        strategy: RecoveryStrategy,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        failed_phase: ExecutionPhase,
        performed: List[RecoveryAction],
    ) -> Tuple[ExecutionPhase, bool]:
        """Returns (resume phase, whether a new server was provisioned)."""
        failed_index = phase_index(failed_phase)

        if strategy == RecoveryStrategy.RETRY_CURRENT_STEP:
            if execution.connection_id and not any(clears_package_locks(a) for a in performed):
                action = RecoveryAction(
                    description="Clear package manager locks",
                    command=CLEAR_PACKAGE_LOCKS,
                    expected_result="APT should be available",
                    timeout_seconds=60,
                )
                self._run_action(action, execution, request)
                performed.append(action)
            return failed_phase, False

        if strategy == RecoveryStrategy.PROVISION_NEW_SERVER:
            if failed_index < phase_index(ExecutionPhase.PROVISIONING_INFRASTRUCTURE):
                return failed_phase, False

            performed.append(RecoveryAction(
                description="Provision replacement server",
                command="",
                expected_result="New server reachable",
            ))
            execution.infrastructure_provisioning = self._call(
                ServiceName.INFRASTRUCTURE,
                "provision_infrastructure",
                provision_args(execution, request),
                request,
            )

            performed.append(RecoveryAction(
                description="Generate fresh SSH credentials",
                command="",
                expected_result="Deploy key installed on new server",
            ))
            execution.credential_result = self._call(
                ServiceName.CREDENTIALS,
                "generate_ssh_key",
                credential_args(execution, request, purpose="recovery_deployment"),
                request,
            )
            return ExecutionPhase.EXECUTING_DEPLOYMENT, True

        if strategy == RecoveryStrategy.SIMPLIFIED_DEPLOYMENT:
            execution.simplified = True

            can_deploy = (
                failed_index >= phase_index(ExecutionPhase.EXECUTING_DEPLOYMENT)
                and execution.server
                and execution.credential_result
            )
            if not can_deploy:
                return failed_phase, False

            performed.append(RecoveryAction(
                description="Simplified deployment (no containers, no health checks)",
                command="",
                expected_result="Application running without containerization",
            ))
            execution.deployment_result = self._call(
                ServiceName.DEPLOYMENT,
                "execute_deployment_plan",
                deploy_args(execution, request),
                request,
            )
            return ExecutionPhase.VERIFYING_HEALTH, False

        raise RecoveryActionError(f"No suitable recovery strategy: {strategy}")

    # -------------------------
    # VERIFICATION
    # -------------------------

    def verify(
        self,
        error: DeploymentError,
        execution: DeploymentExecution,
        request: DeploymentRequest,
    ) -> Tuple[bool, str]:
        if error.type == ErrorType.SSH_CONNECTION_FAILURE and execution.connection_id:
            result = self._agent.call(
                ServiceName.CREDENTIALS,
                "test_ssh_connection",
                {"connection_id": execution.connection_id},
                request.auth_token,
            )
            if result.success:
                return True, "SSH connection restored"
            return False, f"SSH connectivity check failed: {result.error}"

        if error.type == ErrorType.SERVICE_CONFIGURATION_ERROR:
            deployment = (execution.deployment_result or {}).get("execution") or {}
            if deployment.get("id"):
                result = self._agent.call(
                    ServiceName.DEPLOYMENT,
                    "monitor_deployment",
                    {"deployment_id": deployment["id"]},
                    request.auth_token,
                )
                if result.success:
                    return True, "Services running normally"
                return False, f"Service health check failed: {result.error}"

        if error.type == ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR:
            if execution.server.get("id"):
                return True, "Replacement server provisioned"
            return False, "No server available after recovery"

        return True, "Recovery verification passed"

    @staticmethod
    def _check_cancelled(is_cancelled: Callable[[], bool]) -> None:
        if is_cancelled():
            raise RecoveryCancelled("Recovery interrupted by cancellation")
