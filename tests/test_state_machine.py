#tests\test_state_machine.py

"""Test phase and status transitions."""

from uuid import uuid4

import pytest

from deployment_engine.core.errors import InvalidStateTransition
from deployment_engine.core.models import (
    DeploymentExecution,
    ExecutionPhase,
    ExecutionStatus,
    PIPELINE_PHASES,
)
from deployment_engine.core.state_machine import PhaseStateMachine


@pytest.fixture
def execution():
    return DeploymentExecution(
        execution_id=uuid4(),
        request_id="req-1",
        workspace_id="ws-1",
        user_id="user-1",
    )


class TestPhaseTransitions:

    def test_forward_pipeline(self, execution):
        for phase in PIPELINE_PHASES:
            PhaseStateMachine.advance(execution, phase)
        PhaseStateMachine.advance(execution, ExecutionPhase.COMPLETED)

        assert execution.phase == ExecutionPhase.COMPLETED

    def test_cannot_skip_phases(self, execution):
        with pytest.raises(InvalidStateTransition):
            PhaseStateMachine.advance(execution, ExecutionPhase.EXECUTING_DEPLOYMENT)

    def test_cannot_go_backwards_without_recovery(self, execution):
        PhaseStateMachine.advance(execution, ExecutionPhase.ANALYZING_INPUT)
        PhaseStateMachine.advance(execution, ExecutionPhase.PROVISIONING_INFRASTRUCTURE)

        with pytest.raises(InvalidStateTransition):
            PhaseStateMachine.advance(execution, ExecutionPhase.ANALYZING_INPUT)

    def test_failure_goes_through_recovering(self, execution):
        PhaseStateMachine.advance(execution, ExecutionPhase.ANALYZING_INPUT)
        PhaseStateMachine.advance(execution, ExecutionPhase.FAILED)

        with pytest.raises(InvalidStateTransition):
            PhaseStateMachine.advance(execution, ExecutionPhase.ANALYZING_INPUT)

        PhaseStateMachine.advance(execution, ExecutionPhase.RECOVERING)
        PhaseStateMachine.advance(execution, ExecutionPhase.ANALYZING_INPUT)

        assert execution.phase == ExecutionPhase.ANALYZING_INPUT

    def test_recovering_can_resume_any_pipeline_phase(self, execution):
        execution.phase = ExecutionPhase.RECOVERING

        PhaseStateMachine.advance(execution, ExecutionPhase.EXECUTING_DEPLOYMENT)

        assert execution.phase == ExecutionPhase.EXECUTING_DEPLOYMENT

    def test_same_phase_is_noop(self, execution):
        PhaseStateMachine.advance(execution, ExecutionPhase.INITIALIZING)
        assert execution.phase == ExecutionPhase.INITIALIZING

    def test_terminal_status_blocks_phase_changes(self, execution):
        execution.status = ExecutionStatus.CANCELLED

        with pytest.raises(InvalidStateTransition):
            PhaseStateMachine.advance(execution, ExecutionPhase.ANALYZING_INPUT)


class TestStatusTransitions:

    def test_running_to_success_sets_finished_at(self, execution):
        PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)
        assert execution.finished_at is None

        PhaseStateMachine.set_status(execution, ExecutionStatus.SUCCESS)

        assert execution.status == ExecutionStatus.SUCCESS
        assert execution.finished_at is not None
        assert execution.is_terminal()

    def test_recovery_round_trip(self, execution):
        PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)
        PhaseStateMachine.set_status(execution, ExecutionStatus.RECOVERING)
        PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)

        assert execution.status == ExecutionStatus.RUNNING

    def test_error_is_terminal(self, execution):
        PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)
        PhaseStateMachine.set_status(execution, ExecutionStatus.ERROR)

        with pytest.raises(InvalidStateTransition):
            PhaseStateMachine.set_status(execution, ExecutionStatus.RUNNING)

    def test_pending_cannot_succeed_directly(self, execution):
        with pytest.raises(InvalidStateTransition):
            PhaseStateMachine.set_status(execution, ExecutionStatus.SUCCESS)
