#tests\test_clients.py

"""Test the HTTP clients and the resource probe (requests is patched)."""

import pytest
import requests

from deployment_engine.core.errors import DiagnosisError
from deployment_engine.infrastructure.agents.client import HttpRemoteAgentClient
from deployment_engine.infrastructure.reasoning.client import HttpReasoningClient
from deployment_engine.monitoring.models import (
    InfrastructureStatus,
    ProbeStatus,
    ServiceState,
    ServiceStatus,
)
from deployment_engine.monitoring.probe import ResourceHealthProbe


class FakeResponse:

    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code}")


@pytest.fixture
def client():
    return HttpRemoteAgentClient({"infrastructure": "http://infra:5002/"}, timeout=7)


class TestHttpRemoteAgentClient:

    def test_successful_call(self, client, monkeypatch):
        sent = {}

        def fake_post(url, json, headers, timeout):
            sent.update(url=url, json=json, headers=headers, timeout=timeout)
            return FakeResponse(body={"success": True, "result": {"server": {"id": "srv-1"}}})

        monkeypatch.setattr(requests, "post", fake_post)

        result = client.call("infrastructure", "provision_infrastructure", {"size": "s-1vcpu-1gb"}, "tok")

        assert result.success
        assert result.result == {"server": {"id": "srv-1"}}
        assert sent["url"] == "http://infra:5002/provision_infrastructure"
        assert sent["json"] == {"operation": "provision_infrastructure", "arguments": {"size": "s-1vcpu-1gb"}}
        assert sent["headers"]["Authorization"] == "Bearer tok"
        assert sent["timeout"] == 7

    def test_reported_failure(self, client, monkeypatch):
        monkeypatch.setattr(
            requests, "post",
            lambda *a, **kw: FakeResponse(body={"success": False, "error": "droplet limit exceeded"}),
        )

        result = client.call("infrastructure", "provision_infrastructure", {})

        assert not result.success
        assert result.error == "droplet limit exceeded"

    def test_http_error_status(self, client, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(status_code=502, text="bad gateway"))

        result = client.call("infrastructure", "provision_infrastructure", {})

        assert not result.success
        assert "502" in result.error

    def test_transport_error(self, client, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr(requests, "post", refuse)

        result = client.call("infrastructure", "provision_infrastructure", {})

        assert not result.success
        assert "unavailable" in result.error

    def test_unknown_service(self, client):
        result = client.call("billing", "charge", {})
        assert not result.success


class TestHttpReasoningClient:

    def test_returns_message(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(body={"message": "{\"rootCause\": \"x\"}"}))

        assert HttpReasoningClient("http://llm/diagnose").diagnose("prompt") == "{\"rootCause\": \"x\"}"

    def test_failure_raises_diagnosis_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(status_code=500))

        with pytest.raises(DiagnosisError):
            HttpReasoningClient("http://llm/diagnose").diagnose("prompt")


class TestResourceHealthProbe:

    def test_failed_service(self):
        resource = InfrastructureStatus(
            id="srv-1", services=[ServiceStatus(name="app", status=ServiceState.FAILED)]
        )
        assert ResourceHealthProbe().check(resource).status == ProbeStatus.FAIL

    def test_utilization_limit(self):
        resource = InfrastructureStatus(id="srv-1", disk_usage=95)
        assert ResourceHealthProbe().check(resource).status == ProbeStatus.FAIL

    def test_no_url_passes(self):
        assert ResourceHealthProbe().check(InfrastructureStatus(id="srv-1")).status == ProbeStatus.PASS

    def test_http_check(self, monkeypatch):
        resource = InfrastructureStatus(id="srv-1", health_url="http://203.0.113.10/health")

        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(status_code=200))
        assert ResourceHealthProbe().check(resource).status == ProbeStatus.PASS

        monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(status_code=503))
        assert ResourceHealthProbe().check(resource).status == ProbeStatus.FAIL

    def test_http_timeout(self, monkeypatch):
        def slow(url, timeout):
            raise requests.exceptions.Timeout()

        monkeypatch.setattr(requests, "get", slow)
        resource = InfrastructureStatus(id="srv-1", health_url="http://203.0.113.10/health")

        assert ResourceHealthProbe().check(resource).status == ProbeStatus.TIMEOUT
