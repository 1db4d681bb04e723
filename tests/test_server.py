"""Tests for the coordinator HTTP surface and the agent-side client."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from loginwatch.agent.client import CoordinatorClient
from loginwatch.agent.models import VerifiedEvent
from loginwatch.coordinator.device_config import DeviceConfig, DeviceConfigStore
from loginwatch.coordinator.server import CoordinatorServer
from loginwatch.coordinator.service import Coordinator


class _StubCollector:
    def __init__(self):
        self.payloads: list[dict] = []

    async def register_login(self, api_url, token, payload):
        self.payloads.append(payload)
        return True

    async def check_health(self, api_url, token):
        return True, 200


class _StubBreach:
    async def check_hash(self, hash_hex):
        return 0

    def stats(self):
        return {"total_entries": 0, "ttl_seconds": 3600}


@pytest.fixture
async def coordinator_server(tmp_path):
    store = DeviceConfigStore(tmp_path / "device_config.json")
    await store.save(DeviceConfig(device_id="device_srv", api_endpoint="https://collector.example"))
    coordinator = Coordinator(store, collector=_StubCollector(), breach=_StubBreach())
    yield CoordinatorServer(coordinator)
    await coordinator.close()


@pytest.mark.asyncio
async def test_healthz_reports_counters(coordinator_server):
    async with TestClient(TestServer(coordinator_server.build_app())) as client:
        resp = await client.get("/healthz")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "ok"
        assert data["events_received"] == 0
        assert data["breach_cache_ttl_seconds"] == 3600


@pytest.mark.asyncio
async def test_metrics_are_prefixed_gauges(coordinator_server):
    async with TestClient(TestServer(coordinator_server.build_app())) as client:
        resp = await client.get("/metrics")
        assert resp.status == 200
        text = await resp.text()
        assert "loginwatch_events_received 0" in text
        assert "loginwatch_uptime_seconds" in text


@pytest.mark.asyncio
async def test_message_endpoint_dispatches(coordinator_server):
    event = VerifiedEvent.capture("https://app.example:443", "alice", "hunter2")
    async with TestClient(TestServer(coordinator_server.build_app())) as client:
        resp = await client.post("/message", json={"type": "LOGIN_DETECTED", "data": event.to_dict()})
        assert resp.status == 200
        assert await resp.json() == {"success": True}

        resp = await client.post("/message", json={"type": "GET_DEVICE_ID"})
        assert await resp.json() == {"deviceId": "device_srv"}

    payload = coordinator_server.coordinator.collector.payloads[0]
    assert payload["domain"] == "https://app.example:443"
    assert payload["device_id"] == "device_srv"


@pytest.mark.asyncio
async def test_message_endpoint_rejects_bad_body(coordinator_server):
    async with TestClient(TestServer(coordinator_server.build_app())) as client:
        resp = await client.post("/message", data="not json", headers={"Content-Type": "application/json"})
        assert resp.status == 400
        assert await resp.json() == {"success": False, "error": "Invalid request body"}

        resp = await client.post("/message", json=["LOGIN_DETECTED"])
        assert resp.status == 400


@pytest.mark.asyncio
async def test_coordinator_client_round_trip(coordinator_server):
    server = TestServer(coordinator_server.build_app())
    async with TestClient(server):
        client = CoordinatorClient(f"http://{server.host}:{server.port}")

        assert await client.device_id() == "device_srv"
        reply = await client.send(VerifiedEvent.capture("https://app.example:443", "alice", "hunter2"))
        assert reply == {"success": True}


@pytest.mark.asyncio
async def test_coordinator_client_tolerates_missing_coordinator():
    client = CoordinatorClient("http://127.0.0.1:9", timeout=1.0)
    assert await client.device_id() is None


@pytest.mark.asyncio
async def test_status_failure_degrades_health_and_metrics(coordinator_server, monkeypatch):
    def broken_status():
        raise RuntimeError("counters unavailable")

    monkeypatch.setattr(coordinator_server.coordinator, "status", broken_status)
    async with TestClient(TestServer(coordinator_server.build_app())) as client:
        resp = await client.get("/metrics")
        assert resp.status == 200
        assert await resp.text() == 'loginwatch_status{state="error"} 1\n'

        resp = await client.get("/healthz")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "error"
        assert data["message"] == "counters unavailable"
