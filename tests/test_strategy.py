#tests\test_strategy.py

"""Test recovery strategy selection."""

import pytest

from deployment_engine.diagnosis.models import ErrorType, RecoveryStrategy
from deployment_engine.recovery.strategy import select_recovery_strategy


class TestStrategySelection:

    @pytest.mark.parametrize("error_type, expected", [
        (ErrorType.SSH_CONNECTION_FAILURE, RecoveryStrategy.PROVISION_NEW_SERVER),
        (ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR, RecoveryStrategy.PROVISION_NEW_SERVER),
        (ErrorType.PACKAGE_MANAGER_CONFLICT, RecoveryStrategy.RETRY_CURRENT_STEP),
        (ErrorType.SERVICE_CONFIGURATION_ERROR, RecoveryStrategy.SIMPLIFIED_DEPLOYMENT),
    ])
    def test_mapped_types_ignore_attempt_number(self, error_type, expected):
        for attempt in (1, 2, 3):
            assert select_recovery_strategy(error_type, attempt) == expected

    def test_unmapped_type_escalates_after_first_attempt(self):
        """Other types: retry first, then simplify."""
        error_type = ErrorType.APPLICATION_RUNTIME_ERROR

        assert select_recovery_strategy(error_type, 1) == RecoveryStrategy.RETRY_CURRENT_STEP
        assert select_recovery_strategy(error_type, 2) == RecoveryStrategy.SIMPLIFIED_DEPLOYMENT
        assert select_recovery_strategy(error_type, 3) == RecoveryStrategy.SIMPLIFIED_DEPLOYMENT
