"""Agent side of the coordinator message channel."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from ..constants import MessageType
from .models import VerifiedEvent

logger = logging.getLogger(__name__)


class CoordinatorClient:
    """Posts messages to a coordinator listening on loopback."""

    def __init__(self, base_url: str = "http://127.0.0.1:8765", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _post(self, message: dict) -> Optional[dict]:
        url = f"{self.base_url}/message"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=message,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        logger.error("Coordinator returned %s for %s", resp.status, message.get("type"))
                        return None
                    return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Coordinator unreachable at %s: %s", url, exc)
            return None

    async def send(self, event: VerifiedEvent) -> Optional[dict]:
        reply = await self._post({"type": MessageType.LOGIN_DETECTED.value, "data": event.to_dict()})
        if reply is not None and not reply.get("success"):
            logger.warning("Coordinator rejected login event: %s", reply.get("error"))
        return reply

    async def device_id(self) -> Optional[str]:
        reply = await self._post({"type": MessageType.GET_DEVICE_ID.value})
        if not reply:
            return None
        return reply.get("deviceId")
