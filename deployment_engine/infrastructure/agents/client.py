# deployment_engine/infrastructure/agents/client.py
"""HTTP client for the remote agent services."""

import logging
from typing import Any, Dict, Optional

import requests

from deployment_engine.core.agents import AgentCallResult, RemoteAgentClient

logger = logging.getLogger(__name__)


class HttpRemoteAgentClient(RemoteAgentClient):
    """
    Calls `POST <service url>/<operation>` with {"operation", "arguments"}.

    Agents answer {"success": bool, "result": {...}, "error": str}.
    Transport failures and non-200 answers come back as failed results,
    never as exceptions.
    """

    def __init__(self, agent_urls: Dict[str, str], timeout: float = 120.0):
        """
        Args:
            agent_urls: Service name -> base URL (e.g. "http://10.0.1.10:5002")
            timeout: Default request timeout in seconds
        """
        self.agent_urls = {name: url.rstrip("/") for name, url in agent_urls.items()}
        self.timeout = timeout

    def call(
        self,
        service: str,
        operation: str,
        args: Dict[str, Any],
        auth_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> AgentCallResult:
        base_url = self.agent_urls.get(service)
        if not base_url:
            return AgentCallResult.failed(f"Unknown service: {service}")

        url = f"{base_url}/{operation}"
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        logger.debug(f"[agents] {service}.{operation} -> {url}")

        try:
            response = requests.post(
                url,
                json={"operation": operation, "arguments": args},
                headers=headers,
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"[agents] {service}.{operation} timed out")
            return AgentCallResult.failed(f"{service}.{operation} timed out")
        except requests.exceptions.RequestException as e:
            logger.error(f"[agents] {service}.{operation} failed: {e}")
            return AgentCallResult.failed(f"Service {service} unavailable: {e}")

        if response.status_code != 200:
            return AgentCallResult.failed(
                f"{service}.{operation} failed [{response.status_code}]: {response.text}"
            )

        try:
            body = response.json()
        except ValueError:
            return AgentCallResult.failed(f"{service}.{operation} returned invalid JSON")

        if not body.get("success", False):
            return AgentCallResult.failed(body.get("error") or f"{operation} failed")

        return AgentCallResult.ok(body.get("result") or {})
