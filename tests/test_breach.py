"""Tests for the breach range client, its TTL cache and the sweep."""

import aiohttp
import pytest

from loginwatch.cache import BreachCache
from loginwatch.coordinator.breach import BreachCheckClient, BreachService, find_suffix_count
from loginwatch.errors import BreachCheckError
from loginwatch.hashing import sha1_hex

# SHA-1 of "password"
PASSWORD_SHA1 = "5BAA61E4C9B93F3F0682250B6CF8331B7EE68FD8"
RANGE_BODY = "\r\n".join(
    [
        "003D68EB55068C33ACE09247EE4C639306B:3",
        "1E4C9B93F3F0682250B6CF8331B7EE68FD8:3861493",
        "1E4C9B93F3F0682250B6CF8331B7EE68FD9:0",
    ]
)


class _FakeResponse:
    def __init__(self, status: int, body: str):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    def __init__(self, status: int = 200, body: str = RANGE_BODY, error: Exception | None = None):
        self.status = status
        self.body = body
        self.error = error
        self.get_calls: list[tuple[str, dict]] = []

    def get(self, url, headers=None, timeout=None):
        self.get_calls.append((url, headers or {}))
        if self.error is not None:
            raise self.error
        return _FakeResponse(self.status, self.body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _patch_session(monkeypatch, session: _FakeSession) -> None:
    def fake_client_session(*args, **kwargs):
        return session

    monkeypatch.setattr(aiohttp, "ClientSession", fake_client_session)


def test_find_suffix_count_matches_exact_suffix_case_insensitively():
    assert find_suffix_count(RANGE_BODY, "1e4c9b93f3f0682250b6cf8331b7ee68fd8") == 3861493
    assert find_suffix_count(RANGE_BODY, "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF") == 0
    assert find_suffix_count("", "ABC") == 0


def test_find_suffix_count_skips_malformed_lines():
    body = "garbage\nA:B:C\n\n1E4C9B93F3F0682250B6CF8331B7EE68FD8:12\n"
    assert find_suffix_count(body, "1E4C9B93F3F0682250B6CF8331B7EE68FD8") == 12


def test_find_suffix_count_rejects_unparsable_count():
    with pytest.raises(BreachCheckError):
        find_suffix_count("1E4C9B93F3F0682250B6CF8331B7EE68FD8:lots", "1E4C9B93F3F0682250B6CF8331B7EE68FD8")


@pytest.mark.asyncio
async def test_client_sends_only_the_prefix(monkeypatch):
    session = _FakeSession()
    _patch_session(monkeypatch, session)

    client = BreachCheckClient("https://range.example/range")
    count = await client.check_hash(PASSWORD_SHA1.lower())

    assert count == 3861493
    url, headers = session.get_calls[0]
    assert url == "https://range.example/range/5BAA6"
    assert PASSWORD_SHA1[5:] not in url
    assert headers["User-Agent"] == "loginwatch-password-monitor"


@pytest.mark.asyncio
async def test_client_rejects_malformed_hash(monkeypatch):
    session = _FakeSession()
    _patch_session(monkeypatch, session)

    client = BreachCheckClient()
    with pytest.raises(ValueError):
        await client.check_hash("5BAA6")
    with pytest.raises(ValueError):
        await client.check_hash("Z" * 40)
    assert session.get_calls == []


@pytest.mark.asyncio
async def test_client_reports_http_errors(monkeypatch):
    _patch_session(monkeypatch, _FakeSession(status=503, body="unavailable"))

    with pytest.raises(BreachCheckError, match="503"):
        await BreachCheckClient().check_hash(PASSWORD_SHA1)


@pytest.mark.asyncio
async def test_client_wraps_connection_errors(monkeypatch):
    _patch_session(monkeypatch, _FakeSession(error=aiohttp.ClientConnectionError("refused")))

    with pytest.raises(BreachCheckError):
        await BreachCheckClient().check_hash(PASSWORD_SHA1)


@pytest.mark.asyncio
async def test_service_serves_repeat_lookups_from_cache(monkeypatch):
    session = _FakeSession()
    _patch_session(monkeypatch, session)
    clock = _Clock()
    service = BreachService(BreachCheckClient(), BreachCache(ttl_seconds=3600, now=clock))

    assert await service.check_hash(PASSWORD_SHA1) == 3861493
    clock.now += 1800
    assert await service.check_hash(PASSWORD_SHA1.lower()) == 3861493
    assert len(session.get_calls) == 1

    clock.now += 3600
    assert await service.check_hash(PASSWORD_SHA1) == 3861493
    assert len(session.get_calls) == 2


@pytest.mark.asyncio
async def test_service_caches_clean_results(monkeypatch):
    session = _FakeSession()
    _patch_session(monkeypatch, session)
    service = BreachService(BreachCheckClient(), BreachCache(now=_Clock()))
    clean = sha1_hex("correct horse battery staple")

    assert await service.is_breached(clean) is False
    assert await service.is_breached(clean) is False
    assert len(session.get_calls) == 1


@pytest.mark.asyncio
async def test_service_does_not_cache_failures(monkeypatch):
    session = _FakeSession(status=500, body="")
    _patch_session(monkeypatch, session)
    service = BreachService(BreachCheckClient(), BreachCache(now=_Clock()))

    with pytest.raises(BreachCheckError):
        await service.check_hash(PASSWORD_SHA1)
    assert len(service.cache) == 0

    session.status = 200
    session.body = RANGE_BODY
    assert await service.is_breached(PASSWORD_SHA1) is True
    assert len(session.get_calls) == 2


def test_cache_expiry_boundary():
    clock = _Clock(0.0)
    cache = BreachCache(ttl_seconds=3600, now=clock)
    cache.set("abc", 4)

    clock.now = 3599.0
    assert cache.get("ABC") == 4
    clock.now = 3600.0
    assert cache.get("abc") is None
    assert len(cache) == 0


def test_sweep_removes_only_expired_entries():
    clock = _Clock(0.0)
    cache = BreachCache(ttl_seconds=3600, now=clock)
    cache.set("old", 1)
    clock.now = 1800.0
    cache.set("new", 0)

    clock.now = 3700.0
    assert cache.sweep() == 1
    assert cache.get("new") == 0
    assert cache.stats() == {"total_entries": 1, "ttl_seconds": 3600}


def test_clear_cache_empties_entries():
    service = BreachService(BreachCheckClient(), BreachCache(now=_Clock()))
    service.cache.set(PASSWORD_SHA1, 2)
    service.clear_cache()
    assert service.stats()["total_entries"] == 0
