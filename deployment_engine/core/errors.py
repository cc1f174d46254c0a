# deployment_engine/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class DeploymentEngineError(Exception):
    """Base class for all deployment engine errors."""
    pass


# -----------------------------
# Validation / State Errors
# -----------------------------

class DeploymentValidationError(DeploymentEngineError):
    """Invalid deployment request."""
    pass


class InvalidStateTransition(DeploymentEngineError):
    """Illegal phase or status transition attempted."""
    pass


# -----------------------------
# Lookup Errors
# -----------------------------

class ExecutionNotFound(DeploymentEngineError):
    pass


class ExecutionAlreadyActive(DeploymentEngineError):
    """A non-terminal execution already exists for the request."""
    pass


class RecordAlreadyExists(DeploymentEngineError):
    pass


# -----------------------------
# Remote / Recovery Errors
# -----------------------------

class AgentCallError(DeploymentEngineError):
    """Remote agent operation reported failure."""

    def __init__(self, service: str, operation: str, message: str):
        super().__init__(message)
        self.service = service
        self.operation = operation


class RecoveryActionError(DeploymentEngineError):
    pass


class DiagnosisError(DeploymentEngineError):
    """AI diagnosis unavailable or unparsable."""
    pass
