#deployment_engine\core\state_machine.py

from datetime import datetime
from typing import Optional

from deployment_engine.core.errors import InvalidStateTransition
from deployment_engine.core.models import (
    DeploymentExecution,
    ExecutionPhase,
    ExecutionStatus,
    PIPELINE_PHASES,
    TERMINAL_STATUSES,
    utcnow,
)


ALLOWED_PHASE_TRANSITIONS = {
    ExecutionPhase.INITIALIZING: {
        ExecutionPhase.ANALYZING_INPUT,
        ExecutionPhase.FAILED,
    },
    ExecutionPhase.ANALYZING_INPUT: {
        ExecutionPhase.PROVISIONING_INFRASTRUCTURE,
        ExecutionPhase.FAILED,
    },
    ExecutionPhase.PROVISIONING_INFRASTRUCTURE: {
        ExecutionPhase.GENERATING_CREDENTIALS,
        ExecutionPhase.FAILED,
    },
    ExecutionPhase.GENERATING_CREDENTIALS: {
        ExecutionPhase.EXECUTING_DEPLOYMENT,
        ExecutionPhase.FAILED,
    },
    ExecutionPhase.EXECUTING_DEPLOYMENT: {
        ExecutionPhase.VERIFYING_HEALTH,
        ExecutionPhase.FAILED,
    },
    ExecutionPhase.VERIFYING_HEALTH: {
        ExecutionPhase.COMPLETED,
        ExecutionPhase.FAILED,
    },
    ExecutionPhase.FAILED: {
        ExecutionPhase.RECOVERING,
    },
    # Recovery loop-back may re-enter any pipeline phase
    ExecutionPhase.RECOVERING: set(PIPELINE_PHASES) | {ExecutionPhase.FAILED},
}


ALLOWED_STATUS_TRANSITIONS = {
    ExecutionStatus.PENDING: {
        ExecutionStatus.RUNNING,
        ExecutionStatus.ERROR,
        ExecutionStatus.CANCELLED,
    },
    ExecutionStatus.RUNNING: {
        ExecutionStatus.SUCCESS,
        ExecutionStatus.ERROR,
        ExecutionStatus.RECOVERING,
        ExecutionStatus.CANCELLED,
    },
    ExecutionStatus.RECOVERING: {
        ExecutionStatus.RUNNING,
        ExecutionStatus.ERROR,
        ExecutionStatus.CANCELLED,
    },
}


class PhaseStateMachine:
    @staticmethod
    def advance(
        execution: DeploymentExecution,
        new_phase: ExecutionPhase,
    ) -> DeploymentExecution:
        with execution.lock:
            if execution.status in TERMINAL_STATUSES:
                raise InvalidStateTransition(
                    f"Execution {execution.execution_id} is {execution.status.value}"
                )

            current = execution.phase
            if current == new_phase:
                return execution

            allowed = ALLOWED_PHASE_TRANSITIONS.get(current, set())
            if new_phase not in allowed:
                raise InvalidStateTransition(
                    f"Cannot transition from {current.value} to {new_phase.value}"
                )

            execution.phase = new_phase
            return execution

    @staticmethod
    def set_status(
        execution: DeploymentExecution,
        new_status: ExecutionStatus,
        *,
        now: Optional[datetime] = None,
    ) -> DeploymentExecution:
        with execution.lock:
            current = execution.status

            if current == new_status:
                return execution

            allowed = ALLOWED_STATUS_TRANSITIONS.get(current, set())
            if new_status not in allowed:
                raise InvalidStateTransition(
                    f"Cannot change status from {current.value} to {new_status.value}"
                )

            if new_status in TERMINAL_STATUSES:
                execution.finished_at = now or utcnow()

            execution.status = new_status
            return execution
