# deployment_engine/infrastructure/memory/repository.py

from collections import defaultdict
from threading import Lock
from typing import Dict, List, Optional, Set
from uuid import UUID

from deployment_engine.core.errors import RecordAlreadyExists
from deployment_engine.core.models import DeploymentExecution
from deployment_engine.core.repository import ExecutionRepository, StatusRepository
from deployment_engine.monitoring.models import DeploymentStatus


class _OwnerIndex:
    """workspace / user -> keys, for filtered listing."""

    def __init__(self):
        self.by_workspace: Dict[str, Set] = defaultdict(set)
        self.by_user: Dict[str, Set] = defaultdict(set)

    def add(self, key, workspace_id: str, user_id: str) -> None:
        self.by_workspace[workspace_id].add(key)
        self.by_user[user_id].add(key)

    def select(self, keys, workspace_id: Optional[str], user_id: Optional[str]) -> Set:
        selected = set(keys)
        if workspace_id is not None:
            selected &= self.by_workspace.get(workspace_id, set())
        if user_id is not None:
            selected &= self.by_user.get(user_id, set())
        return selected


class InMemoryExecutionRepository(ExecutionRepository):
    def __init__(self):
        self._store: Dict[UUID, DeploymentExecution] = {}
        self._index = _OwnerIndex()
        self._lock = Lock()

    def create(self, execution: DeploymentExecution) -> None:
        with self._lock:
            if execution.execution_id in self._store:
                raise RecordAlreadyExists("Execution already exists")
            self._store[execution.execution_id] = execution
            self._index.add(execution.execution_id, execution.workspace_id, execution.user_id)

    def get(self, execution_id: UUID) -> Optional[DeploymentExecution]:
        return self._store.get(execution_id)

    def list(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[DeploymentExecution]:
        with self._lock:
            keys = self._index.select(self._store.keys(), workspace_id, user_id)
            results = [self._store[k] for k in keys]
        return sorted(results, key=lambda e: e.started_at)

    def find_active_by_request(self, request_id: str) -> Optional[DeploymentExecution]:
        with self._lock:
            for execution in self._store.values():
                if execution.request_id == request_id and not execution.is_terminal():
                    return execution
        return None


class InMemoryStatusRepository(StatusRepository):
    def __init__(self):
        self._store: Dict[str, DeploymentStatus] = {}
        self._index = _OwnerIndex()
        self._lock = Lock()

    def create(self, status: DeploymentStatus) -> None:
        with self._lock:
            if status.deployment_id in self._store:
                raise RecordAlreadyExists(f"Status for {status.deployment_id} already exists")
            self._store[status.deployment_id] = status
            self._index.add(status.deployment_id, status.workspace_id, status.user_id)

    def get(self, deployment_id: str) -> Optional[DeploymentStatus]:
        return self._store.get(deployment_id)

    def list(
        self,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> List[DeploymentStatus]:
        with self._lock:
            keys = self._index.select(self._store.keys(), workspace_id, user_id)
            results = [self._store[k] for k in keys]
        return sorted(results, key=lambda s: s.started_at)
