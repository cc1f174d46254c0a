# deployment_engine/monitoring/probe.py
"""Health probes for attached infrastructure."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from deployment_engine.monitoring.models import InfrastructureStatus, ProbeStatus

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    status: ProbeStatus
    details: Optional[str] = None


class HealthProbe(ABC):

    @abstractmethod
    def check(self, resource: InfrastructureStatus) -> ProbeResult:
        raise NotImplementedError


class ResourceHealthProbe(HealthProbe):
    """
    Probe built from what is known about the resource.

    - any failed service process -> fail
    - utilization beyond the probe limits -> fail
    - if the resource exposes a health_url, an HTTP GET must answer 2xx/3xx
    """

    def __init__(
        self,
        cpu_limit: float = 90.0,
        memory_limit: float = 95.0,
        disk_limit: float = 90.0,
        timeout_seconds: float = 5.0,
    ):
        self.cpu_limit = cpu_limit
        self.memory_limit = memory_limit
        self.disk_limit = disk_limit
        self.timeout_seconds = timeout_seconds

    def check(self, resource: InfrastructureStatus) -> ProbeResult:
        if resource.failed_service_count() > 0:
            return ProbeResult(ProbeStatus.FAIL, "One or more services are not running")

        if (
            resource.cpu_usage > self.cpu_limit
            or resource.memory_usage > self.memory_limit
            or resource.disk_usage > self.disk_limit
        ):
            return ProbeResult(ProbeStatus.FAIL, "High resource utilization detected")

        if resource.health_url:
            return self._check_http(resource)

        return ProbeResult(ProbeStatus.PASS)

    def _check_http(self, resource: InfrastructureStatus) -> ProbeResult:
        url = resource.health_url

        try:
            response = requests.get(url, timeout=self.timeout_seconds)
        except requests.exceptions.Timeout:
            logger.warning(f"[{resource.id}] ❌ HTTP check timeout: {url}")
            return ProbeResult(ProbeStatus.TIMEOUT, f"No response within {self.timeout_seconds}s")
        except requests.exceptions.RequestException as e:
            logger.warning(f"[{resource.id}] ❌ HTTP check error: {e}")
            return ProbeResult(ProbeStatus.FAIL, str(e))

        if 200 <= response.status_code < 400:
            logger.debug(f"[{resource.id}] ✅ HTTP check OK: {url} ({response.status_code})")
            return ProbeResult(ProbeStatus.PASS)

        logger.warning(f"[{resource.id}] ❌ HTTP check FAIL: {url} returned {response.status_code}")
        return ProbeResult(ProbeStatus.FAIL, f"{url} returned {response.status_code}")
