# deployment_engine/core/repository.py

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from deployment_engine.core.models import DeploymentExecution


class ExecutionRepository(ABC):
    """
    Storage contract for deployment executions.
    """

    @abstractmethod
    def create(self, execution: DeploymentExecution) -> None:
        """
        Store a new execution.
        Must fail if execution_id already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, execution_id: UUID) -> Optional[DeploymentExecution]:
        """
        Fetch execution by ID.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def list(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[DeploymentExecution]:
        """
        List executions, optionally filtered by workspace and/or user.
        """
        raise NotImplementedError

    @abstractmethod
    def find_active_by_request(self, request_id: str) -> Optional[DeploymentExecution]:
        """
        Return the non-terminal execution for a request, if any.
        """
        raise NotImplementedError


class StatusRepository(ABC):
    """
    Storage contract for deployment status records.
    """

    @abstractmethod
    def create(self, status) -> None:
        raise NotImplementedError

    @abstractmethod
    def get(self, deployment_id: str):
        raise NotImplementedError

    @abstractmethod
    def list(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List:
        raise NotImplementedError
