"""Contract for reaching remote subsystems (analysis, provisioning, credentials, deployment)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class ServiceName:
    REPOSITORY_ANALYSIS = "repository_analysis"
    INFRASTRUCTURE = "infrastructure"
    CREDENTIALS = "credentials"
    DEPLOYMENT = "deployment"


@dataclass
class AgentCallResult:
    """Outcome of one remote operation."""
    success: bool
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @staticmethod
    def ok(result: Optional[Dict[str, Any]] = None) -> "AgentCallResult":
        return AgentCallResult(success=True, result=result or {})

    @staticmethod
    def failed(error: str) -> "AgentCallResult":
        return AgentCallResult(success=False, error=error)


class RemoteAgentClient(ABC):
    """Transport-agnostic remote operation interface."""

    @abstractmethod
    def call(
        self,
        service: str,
        operation: str,
        args: Dict[str, Any],
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> AgentCallResult:
        """Run one operation against a remote service."""
        raise NotImplementedError
