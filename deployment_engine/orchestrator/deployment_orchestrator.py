# deployment_engine/orchestrator/deployment_orchestrator.py
"""Deployment orchestrator - drives the pipeline and its recovery loop."""

import logging
import threading
import time
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from deployment_engine.core.agents import RemoteAgentClient
from deployment_engine.core.cancellation import CancellationToken
from deployment_engine.core.errors import (
    AgentCallError,
    DeploymentValidationError,
    ExecutionAlreadyActive,
    ExecutionNotFound,
    InvalidStateTransition,
)
from deployment_engine.core.events import EventEmitter, NullEventEmitter
from deployment_engine.core.events_model import DeploymentEvent
from deployment_engine.core.models import (
    DeploymentExecution,
    DeploymentRequest,
    ExecutionPhase,
    ExecutionStatus,
    FailureSummary,
)
from deployment_engine.core.repository import ExecutionRepository
from deployment_engine.core.state_machine import PhaseStateMachine
from deployment_engine.diagnosis.models import DeploymentError, ErrorType
from deployment_engine.diagnosis.service import ErrorHandlingService
from deployment_engine.monitoring.models import (
    InfrastructureStatus,
    IssueSeverity,
    ProbeStatus,
    StatusIssue,
)
from deployment_engine.monitoring.service import StatusMonitoringService
from deployment_engine.orchestrator.pipeline import (
    PIPELINE,
    PhaseDefinition,
    extract_app_name,
    phase_index,
)
from deployment_engine.recovery.executor import RecoveryExecutor, RecoveryOutcome
from deployment_engine.recovery.strategy import select_recovery_strategy

logger = logging.getLogger(__name__)


ORCHESTRATOR_SERVICE = "deployment_orchestrator"
RECOVERY_SERVICE = "recovery_orchestrator"

REQUIRED_REQUEST_FIELDS = ("request_id", "workspace_id", "user_id", "repository_url")

FAILURE_SUGGESTIONS: Dict[ErrorType, List[str]] = {
    ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR: [
        "Check provider account limits",
        "Verify API token permissions",
        "Try a different region",
    ],
    ErrorType.SSH_CONNECTION_FAILURE: [
        "Check firewall rules for port 22",
        "Verify the deploy key was installed on the server",
    ],
    ErrorType.PACKAGE_MANAGER_CONFLICT: [
        "Wait for unattended upgrades to finish and redeploy",
    ],
    ErrorType.SERVICE_CONFIGURATION_ERROR: [
        "Review the generated nginx and service configuration",
        "Check application logs for startup errors",
    ],
    ErrorType.DEPENDENCY_RESOLUTION_ERROR: [
        "Pin conflicting dependency versions",
        "Regenerate the lock file",
    ],
    ErrorType.SSL_CERTIFICATE_ERROR: [
        "Verify the domain points at the server",
        "Renew the certificate",
    ],
}

DEFAULT_SUGGESTIONS = [
    "Review the error details and application logs",
    "Retry the deployment once the root cause is fixed",
]


class DeploymentOrchestrator:
    """
    Runs deployment executions end to end.

    Flow per execution (on its own worker thread):
    1. Run each pipeline phase through its remote service
    2. On failure: classify and diagnose, then run recovery attempts
    3. Resume from the phase chosen by recovery, or fail permanently
       once attempts are exhausted or the pipeline deadline has passed

    Cancellation is cooperative: observed at phase boundaries, after
    remote calls return, and between recovery steps.
    """

    def __init__(
        self,
        repository: ExecutionRepository,
        agent_client: RemoteAgentClient,
        error_service: ErrorHandlingService,
        recovery_executor: RecoveryExecutor,
        monitor: StatusMonitoringService,
        event_emitter: Optional[EventEmitter] = None,
        *,
        max_recovery_attempts: int = 3,
        pipeline_timeout_seconds: Optional[float] = 3600.0,
        server_hourly_cost: float = 0.036,
        server_monthly_cost: float = 24.0,
    ):
        self._repo = repository
        self._agent = agent_client
        self._errors = error_service
        self._recovery = recovery_executor
        self._monitor = monitor
        self._emitter = event_emitter or NullEventEmitter()

        self.max_recovery_attempts = max_recovery_attempts
        self.pipeline_timeout_seconds = pipeline_timeout_seconds
        self.server_hourly_cost = server_hourly_cost
        self.server_monthly_cost = server_monthly_cost

        self._lock = threading.Lock()
        self._tokens: Dict[UUID, CancellationToken] = {}
        self._threads: Dict[UUID, threading.Thread] = {}
        # DeploymentError.id -> StatusIssue.id
        self._issue_ids: Dict[UUID, UUID] = {}

    # -------------------------
    # PUBLIC API
    # -------------------------

    def start(self, request: DeploymentRequest) -> DeploymentExecution:
        """Create an execution and run it in the background."""
        self._validate(request)

        with self._lock:
            active = self._repo.find_active_by_request(request.request_id)
            if active:
                raise ExecutionAlreadyActive(
                    f"Request {request.request_id} already has active execution {active.execution_id}"
                )

            execution = DeploymentExecution(
                execution_id=uuid4(),
                request_id=request.request_id,
                workspace_id=request.workspace_id,
                user_id=request.user_id,
                app_name=extract_app_name(request.repository_url),
                steps=[definition.new_step() for definition in PIPELINE],
            )
            self._repo.create(execution)

            token = CancellationToken()
            thread = threading.Thread(
                target=self._run,
                args=(execution, request, token),
                name=f"deployment-{execution.execution_id}",
                daemon=True,
            )
            self._tokens[execution.execution_id] = token
            self._threads[execution.execution_id] = thread

        self._monitor.create_deployment_status(
            self._deployment_id(execution),
            execution.workspace_id,
            execution.user_id,
            execution.app_name,
        )

        logger.info(
            f"[orchestrator] 🚀 starting execution {execution.execution_id} "
            f"for {request.repository_url} ({request.branch})"
        )
        self._emit(DeploymentEvent.deployment_started(execution))

        thread.start()
        return execution

    def get(self, execution_id: UUID) -> Optional[DeploymentExecution]:
        return self._repo.get(execution_id)

    def list(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[DeploymentExecution]:
        return self._repo.list(workspace_id=workspace_id, user_id=user_id)

    def cancel(self, execution_id: UUID) -> bool:
        """
        Request cancellation. Returns False when the execution is already terminal.

        A remote call already in flight finishes; its result is discarded.
        """
        execution = self._require_execution(execution_id)

        with execution.lock:
            if execution.is_terminal():
                return False
            # workers observe the token before the status changes
            token = self._tokens.get(execution_id)
            if token:
                token.cancel()
            PhaseStateMachine.set_status(execution, ExecutionStatus.CANCELLED)
            execution.current_step = "Deployment cancelled"

        logger.info(f"[orchestrator] execution {execution_id} cancelled")
        self._monitor.update_deployment_phase(
            self._deployment_id(execution),
            execution.phase,
            "Deployment cancelled",
        )
        self._emit(DeploymentEvent.deployment_cancelled(execution))
        return True

    def wait(self, execution_id: UUID, timeout: Optional[float] = None) -> DeploymentExecution:
        """Block until the worker thread for an execution exits (or timeout)."""
        execution = self._require_execution(execution_id)
        thread = self._threads.get(execution_id)
        if thread:
            thread.join(timeout)
        return execution

    # -------------------------
    # WORKER
    # -------------------------

    def _run(
        self,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        token: CancellationToken,
    ) -> None:
        try:
            self._run_pipeline(execution, request, token)
        except InvalidStateTransition as e:
            if token.is_cancelled or execution.status == ExecutionStatus.CANCELLED:
                logger.info(f"[orchestrator] execution {execution.execution_id} stopped after cancellation")
                return
            logger.error(f"[orchestrator] execution {execution.execution_id}: {e}", exc_info=True)
            self._fail_unexpectedly(execution, request, e)
        except Exception as e:
            logger.error(f"[orchestrator] execution {execution.execution_id} crashed: {e}", exc_info=True)
            self._fail_unexpectedly(execution, request, e)

    def _run_pipeline(
        self,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        token: CancellationToken,
    ) -> None:
        deadline = None
        if self.pipeline_timeout_seconds is not None:
            deadline = time.monotonic() + self.pipeline_timeout_seconds

        if token.is_cancelled:
            return
        PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)

        index = 0
        while index < len(PIPELINE):
            definition = PIPELINE[index]

            if token.is_cancelled:
                return
            if self._deadline_passed(deadline):
                self._time_out(execution, request, definition.phase)
                return

            try:
                finished = self._run_phase(definition, execution, request, token)
            except InvalidStateTransition:
                raise
            except Exception as e:
                if token.is_cancelled:
                    return
                resume = self._handle_phase_failure(definition, execution, request, token, e, deadline)
                if resume is None:
                    return
                index = phase_index(resume)
                continue

            if not finished:
                return
            index += 1

        if token.is_cancelled:
            return
        self._complete(execution)

    def _run_phase(
        self,
        definition: PhaseDefinition,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        token: CancellationToken,
    ) -> bool:
        """Run one phase. Returns False if cancellation was observed."""
        deployment_id = self._deployment_id(execution)

        with execution.lock:
            PhaseStateMachine.advance(execution, definition.phase)
            step = execution.step_for(definition.phase)
            step.begin()
            execution.current_step = f"{definition.name} in progress"

        self._monitor.update_deployment_phase(
            deployment_id, definition.phase, f"Starting {definition.name}", execution.progress
        )
        logger.info(f"[orchestrator] {execution.execution_id} -> {definition.phase.value}")

        args = definition.build_args(execution, request)
        result = self._agent.call(definition.service, definition.operation, args, request.auth_token)

        if token.is_cancelled:
            return False

        if not result.success:
            raise AgentCallError(
                definition.service,
                definition.operation,
                result.error or f"{definition.operation} failed",
            )

        with execution.lock:
            if definition.result_field:
                setattr(execution, definition.result_field, result.result)
            step.succeed()
            execution.recompute_progress()
            execution.current_step = f"{definition.name} completed"

        self._monitor.update_deployment_phase(
            deployment_id, definition.phase, execution.current_step, execution.progress
        )
        if definition.phase == ExecutionPhase.PROVISIONING_INFRASTRUCTURE:
            self._attach_server(execution)

        logger.info(f"[orchestrator] ✅ {execution.execution_id} {definition.name} ({step.duration_ms}ms)")
        self._emit(DeploymentEvent.step_completed(execution, step))
        return True

    # -------------------------
    # FAILURE / RECOVERY
    # -------------------------

    def _handle_phase_failure(
        self,
        definition: PhaseDefinition,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        token: CancellationToken,
        exc: Exception,
        deadline: Optional[float],
    ) -> Optional[ExecutionPhase]:
        """Returns the phase to resume at, or None when the execution is finished."""
        message = str(exc) or exc.__class__.__name__
        failed_phase = definition.phase

        with execution.lock:
            step = execution.step_for(failed_phase)
            step.fail(message)
            execution.current_step = f"{definition.name} failed"
            PhaseStateMachine.advance(execution, ExecutionPhase.FAILED)

        logger.warning(f"[orchestrator] ❌ {execution.execution_id} {definition.name} failed: {message}")
        self._emit(DeploymentEvent.step_failed(execution, step))

        error = self._record_error(
            execution,
            request,
            service=definition.service,
            phase=failed_phase,
            message=message,
            context={"operation": definition.operation},
        )

        return self._recover(execution, request, token, error, failed_phase, deadline)

    def _recover(
        self,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        token: CancellationToken,
        error: DeploymentError,
        failed_phase: ExecutionPhase,
        deadline: Optional[float],
    ) -> Optional[ExecutionPhase]:
        deployment_id = self._deployment_id(execution)
        last_outcome: Optional[RecoveryOutcome] = None
        # every error raised while recovering from the original failure
        chain: List[DeploymentError] = [error]

        while True:
            if token.is_cancelled:
                return None
            if execution.recovery_attempts >= self.max_recovery_attempts:
                self._fail_permanently(execution, error, last_outcome)
                return None
            if self._deadline_passed(deadline):
                self._time_out(execution, request, failed_phase)
                return None

            with execution.lock:
                execution.recovery_attempts += 1
                attempt_number = execution.recovery_attempts
                PhaseStateMachine.advance(execution, ExecutionPhase.RECOVERING)
                PhaseStateMachine.set_status(execution, ExecutionStatus.RECOVERING)
                execution.current_step = (
                    f"Attempting recovery (attempt {attempt_number}/{self.max_recovery_attempts})"
                )

            strategy = select_recovery_strategy(error.type, attempt_number)
            self._monitor.update_deployment_phase(
                deployment_id,
                ExecutionPhase.RECOVERING,
                f"{execution.current_step}: {strategy.value}",
            )

            outcome = self._recovery.execute(
                strategy,
                error,
                execution,
                request,
                failed_phase,
                is_cancelled=lambda: token.is_cancelled,
            )
            error.record_attempt(outcome.attempt)

            if token.is_cancelled:
                return None

            if outcome.success:
                self._resolve_errors(deployment_id, chain)
                if outcome.provisioned:
                    self._attach_server(execution)

                resume_phase = outcome.resume_phase or failed_phase
                with execution.lock:
                    self._mark_recovered_steps(execution, failed_phase, resume_phase)
                    PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)
                    execution.current_step = f"Recovered, resuming at {resume_phase.value}"

                logger.info(
                    f"[orchestrator] ✅ {execution.execution_id} recovered via {strategy.value}, "
                    f"resuming at {resume_phase.value}"
                )
                self._emit(DeploymentEvent.recovery_successful(execution, outcome.attempt))
                return resume_phase

            last_outcome = outcome
            with execution.lock:
                PhaseStateMachine.advance(execution, ExecutionPhase.FAILED)
            self._emit(DeploymentEvent.recovery_failed(execution, outcome.attempt))

            error = self._record_error(
                execution,
                request,
                service=RECOVERY_SERVICE,
                phase=failed_phase,
                message=outcome.error_message or outcome.attempt.outcome,
                context={
                    "strategy": strategy.value,
                    "attempt": attempt_number,
                    "original_error": str(error.id),
                },
            )
            chain.append(error)

    def _resolve_errors(self, deployment_id: str, errors: List[DeploymentError]) -> None:
        for error in errors:
            self._errors.mark_resolved(error.id)
            issue_id = self._issue_ids.pop(error.id, None)
            if issue_id:
                self._monitor.resolve_issue(deployment_id, issue_id)

    def _record_error(
        self,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        *,
        service: str,
        phase: ExecutionPhase,
        message: str,
        context: Optional[dict] = None,
    ) -> DeploymentError:
        error = self._errors.handle_deployment_error(
            service,
            phase,
            message,
            context,
            connection_id=execution.connection_id,
            auth_token=request.auth_token,
        )

        with execution.lock:
            execution.errors.append(error)

        actions = error.analysis.recommended_actions if error.analysis else []
        issue = StatusIssue(
            severity=IssueSeverity(error.severity.value),
            type=error.type.value,
            title=f"Deployment error in {phase.value}",
            description=error.message,
            affected_components=(service,),
            mitigation_steps=tuple(a.description for a in actions),
            auto_resolvable=any(a.retryable for a in actions),
            estimated_resolution=(
                f"{error.analysis.estimated_repair_minutes:g} minutes" if error.analysis else None
            ),
        )
        self._monitor.add_issue(self._deployment_id(execution), issue)
        self._issue_ids[error.id] = issue.id

        self._emit(DeploymentEvent.execution_error(execution, error))
        return error

    def _fail_permanently(
        self,
        execution: DeploymentExecution,
        error: DeploymentError,
        last_outcome: Optional[RecoveryOutcome] = None,
    ) -> None:
        analysis = error.analysis
        last_fix = None
        if last_outcome:
            last_fix = f"{last_outcome.attempt.strategy.value}: {last_outcome.attempt.outcome}"

        summary = FailureSummary(
            root_cause=analysis.root_cause if analysis else error.message,
            last_attempted_fix=last_fix,
            estimated_repair_minutes=analysis.estimated_repair_minutes if analysis else 30.0,
            estimated_cost_impact=analysis.risk_assessment.cost_impact if analysis else 0.0,
            suggestions=list(FAILURE_SUGGESTIONS.get(error.type, DEFAULT_SUGGESTIONS)),
        )

        with execution.lock:
            if execution.is_terminal():
                return
            PhaseStateMachine.advance(execution, ExecutionPhase.FAILED)
            PhaseStateMachine.set_status(execution, ExecutionStatus.ERROR)
            execution.failure_summary = summary
            execution.current_step = f"Deployment failed: {summary.root_cause}"

        logger.error(
            f"[orchestrator] ❌ execution {execution.execution_id} failed after "
            f"{execution.recovery_attempts} recovery attempt(s): {summary.root_cause}"
        )
        self._monitor.update_deployment_phase(
            self._deployment_id(execution),
            ExecutionPhase.FAILED,
            execution.current_step,
        )
        self._emit(DeploymentEvent.deployment_failed(execution))

    def _time_out(
        self,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        phase: ExecutionPhase,
    ) -> None:
        with execution.lock:
            if execution.phase != ExecutionPhase.FAILED:
                PhaseStateMachine.advance(execution, ExecutionPhase.FAILED)

        error = self._record_error(
            execution,
            request,
            service=ORCHESTRATOR_SERVICE,
            phase=phase,
            message=f"Deployment exceeded pipeline timeout of {self.pipeline_timeout_seconds:g}s",
        )
        self._fail_permanently(execution, error)

    def _fail_unexpectedly(
        self,
        execution: DeploymentExecution,
        request: DeploymentRequest,
        exc: Exception,
    ) -> None:
        """Last resort for errors escaping the pipeline loop. No recovery."""
        if execution.is_terminal():
            return
        try:
            error = self._record_error(
                execution,
                request,
                service=ORCHESTRATOR_SERVICE,
                phase=execution.phase,
                message=str(exc) or exc.__class__.__name__,
            )
            self._fail_permanently(execution, error)
        except Exception as e:
            logger.error(f"[orchestrator] could not finalize {execution.execution_id}: {e}", exc_info=True)

    def _complete(self, execution: DeploymentExecution) -> None:
        with execution.lock:
            PhaseStateMachine.advance(execution, ExecutionPhase.COMPLETED)
            PhaseStateMachine.set_status(execution, ExecutionStatus.SUCCESS)
            execution.progress = 100
            execution.current_step = "Deployment completed successfully"

        logger.info(f"[orchestrator] 🎉 execution {execution.execution_id} completed")
        self._monitor.update_deployment_phase(
            self._deployment_id(execution),
            ExecutionPhase.COMPLETED,
            execution.current_step,
            100,
        )
        self._emit(DeploymentEvent.deployment_completed(execution))

    # -------------------------
    # HELPERS
    # -------------------------

    @staticmethod
    def _mark_recovered_steps(
        execution: DeploymentExecution,
        failed_phase: ExecutionPhase,
        resume_phase: ExecutionPhase,
    ) -> None:
        """Steps skipped over by recovery were completed by the recovery itself."""
        start, end = phase_index(failed_phase), phase_index(resume_phase)
        for definition in PIPELINE[start:end]:
            step = execution.step_for(definition.phase)
            if not step.success:
                step.succeed()
        execution.recompute_progress()

    def _attach_server(self, execution: DeploymentExecution) -> None:
        server = execution.server
        if not server:
            return

        resource = InfrastructureStatus(
            id=str(server.get("id") or uuid4()),
            region=server.get("region") or "nyc3",
            ip_address=server.get("ip_address"),
            hostname=server.get("hostname") or server.get("name"),
            hourly_cost=float(server.get("hourly_cost", self.server_hourly_cost)),
            monthly_cost=float(server.get("monthly_cost", self.server_monthly_cost)),
            health_check_status=ProbeStatus.PASS,
        )
        self._monitor.attach_infrastructure(self._deployment_id(execution), resource)

    @staticmethod
    def _deadline_passed(deadline: Optional[float]) -> bool:
        return deadline is not None and time.monotonic() >= deadline

    @staticmethod
    def _deployment_id(execution: DeploymentExecution) -> str:
        return str(execution.execution_id)

    @staticmethod
    def _validate(request: DeploymentRequest) -> None:
        missing = [name for name in REQUIRED_REQUEST_FIELDS if not getattr(request, name, None)]
        if missing:
            raise DeploymentValidationError(f"Missing required fields: {', '.join(missing)}")

    def _require_execution(self, execution_id: UUID) -> DeploymentExecution:
        execution = self._repo.get(execution_id)
        if not execution:
            raise ExecutionNotFound(f"Execution {execution_id} not found")
        return execution

    def _emit(self, event: DeploymentEvent) -> None:
        try:
            self._emitter.emit([event])
        except Exception as e:
            logger.warning(f"[orchestrator] event {event.event_type} not delivered: {e}")
