# deployment_engine/infrastructure/reasoning/client.py
"""Client for the reasoning (LLM) service used by AI diagnosis."""

import logging
from abc import ABC, abstractmethod

import requests

from deployment_engine.core.errors import DiagnosisError

logger = logging.getLogger(__name__)


class ReasoningClient(ABC):

    @abstractmethod
    def diagnose(self, prompt: str) -> str:
        """Return the model's raw text answer."""
        raise NotImplementedError


class HttpReasoningClient(ReasoningClient):
    """POSTs {"prompt"} and reads the answer from "message"."""

    def __init__(self, url: str, timeout: float = 60.0):
        self.url = url
        self.timeout = timeout

    def diagnose(self, prompt: str) -> str:
        try:
            response = requests.post(
                self.url,
                json={"prompt": prompt},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise DiagnosisError(f"Reasoning service unavailable: {e}") from e

        message = body.get("message")
        if not message:
            raise DiagnosisError("Reasoning service returned an empty answer")

        logger.debug(f"[reasoning] received {len(message)} chars")
        return message
