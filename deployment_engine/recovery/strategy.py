# deployment_engine/recovery/strategy.py
"""Recovery strategy policy as a pure (error type, attempt) -> strategy table."""

from typing import Dict

from deployment_engine.diagnosis.models import ErrorType, RecoveryStrategy


STRATEGY_TABLE: Dict[ErrorType, RecoveryStrategy] = {
    ErrorType.SSH_CONNECTION_FAILURE: RecoveryStrategy.PROVISION_NEW_SERVER,
    ErrorType.INFRASTRUCTURE_PROVISIONING_ERROR: RecoveryStrategy.PROVISION_NEW_SERVER,
    # Same strategy on every attempt, no escalation
    ErrorType.PACKAGE_MANAGER_CONFLICT: RecoveryStrategy.RETRY_CURRENT_STEP,
    ErrorType.SERVICE_CONFIGURATION_ERROR: RecoveryStrategy.SIMPLIFIED_DEPLOYMENT,
}


def select_recovery_strategy(error_type: ErrorType, attempt_number: int) -> RecoveryStrategy:
    """
    Choose how to react to a classified error.

    Args:
        error_type: Classified error type
        attempt_number: 1-based recovery attempt for the execution

    Returns:
        Strategy to execute
    """
    strategy = STRATEGY_TABLE.get(error_type)
    if strategy:
        return strategy

    if attempt_number <= 1:
        return RecoveryStrategy.RETRY_CURRENT_STEP
    return RecoveryStrategy.SIMPLIFIED_DEPLOYMENT
