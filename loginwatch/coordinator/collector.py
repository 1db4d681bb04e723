"""Client for the backend collector that ingests login events."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..constants import DEFAULT_REGISTER_PATH, HEALTH_CHECK_PATH
from ..errors import TransportRefused
from .transport import is_allowed_endpoint

logger = logging.getLogger(__name__)


class CollectorClient:
    """Posts login fingerprints to the collector's register endpoint."""

    def __init__(
        self,
        register_path: str = DEFAULT_REGISTER_PATH,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.register_path = register_path
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def register_login(self, api_url: str, token: str, payload: dict) -> bool:
        """Send one login record. Returns True on any 2xx.

        Raises TransportRefused without sending when the endpoint is insecure.
        """
        if not is_allowed_endpoint(api_url):
            raise TransportRefused(api_url)

        url = api_url.rstrip("/") + self.register_path
        try:
            async with self._client() as client:
                resp = await client.post(url, headers=self._headers(token), json=payload)
        except httpx.HTTPError as exc:
            logger.error("Failed to send login data to %s: %s", url, exc)
            return False

        if not resp.is_success:
            logger.error("Failed to send login data: HTTP %s %s", resp.status_code, resp.text[:200])
            return False
        return True

    async def check_health(self, api_url: str, token: str) -> tuple[bool, int]:
        """Verify the endpoint and token against the collector health check."""
        url = api_url.rstrip("/") + HEALTH_CHECK_PATH
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            async with self._client() as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Collector health check failed for %s: %s", url, exc)
            return False, 0
        return resp.is_success, resp.status_code
