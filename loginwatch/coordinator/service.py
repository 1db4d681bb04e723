"""Coordinator: receives verified logins and reports them upstream."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from ..agent.models import VerifiedEvent
from ..constants import MessageType
from ..errors import ConfigLockedError, TransportRefused
from .breach import BreachService
from .collector import CollectorClient
from .device_config import DeviceConfig, DeviceConfigStore
from .notifier import LogNotifier, breach_warning
from .transport import is_valid_http_url

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def warn(self, title: str, message: str) -> None: ...


def _mask(token: str) -> str:
    if not token:
        return ""
    return token[:2] + "*" * max(0, len(token) - 2)


class Coordinator:
    """Long-lived process shared by every page agent on the device."""

    def __init__(
        self,
        store: DeviceConfigStore,
        collector: Optional[CollectorClient] = None,
        breach: Optional[BreachService] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.collector = collector or CollectorClient()
        self.breach = breach or BreachService()
        self.notifier = notifier or LogNotifier()
        self._background: set[asyncio.Task] = set()
        self.counters = {
            "events_received": 0,
            "events_reported": 0,
            "events_filtered": 0,
            "events_refused": 0,
            "breach_warnings": 0,
        }

    async def handle_message(self, message: dict) -> dict:
        """Dispatch one agent message and build its reply."""
        try:
            config = await self.store.load()
            if not config.enabled:
                return {"success": False, "error": "Extension is disabled"}

            msg_type = message.get("type") if isinstance(message, dict) else None
            if msg_type == MessageType.LOGIN_DETECTED:
                event = VerifiedEvent.from_dict(message.get("data") or {})
                await self.handle_login(event, config)
                self.schedule_breach_check(event)
                return {"success": True}

            if msg_type == MessageType.GET_DEVICE_ID:
                return {"deviceId": config.device_id}

            if msg_type == MessageType.GET_CONFIG:
                record = config.to_record()
                record["token"] = _mask(record["token"])
                return {"success": True, "config": record}

            if msg_type == MessageType.SAVE_CONFIG:
                return await self._save_config(message.get("data") or {}, config)

            if msg_type == MessageType.VERIFY_TOKEN:
                ok, status = await self.collector.check_health(config.api_endpoint, config.auth_token)
                return {"success": ok, "status": status}

            logger.warning("Unknown message type: %s", msg_type)
            return {"success": False, "error": "Unknown message type"}
        except ValueError as exc:
            logger.warning("Rejected malformed message: %s", exc)
            return {"success": False, "error": str(exc)}
        except Exception:
            logger.exception("Error handling message")
            return {"success": False, "error": "Internal error"}

    async def handle_login(self, event: VerifiedEvent, config: Optional[DeviceConfig] = None) -> bool:
        """Report one verified login. Returns True if the collector accepted it."""
        config = config or await self.store.load()
        self.counters["events_received"] += 1

        if not config.enabled:
            return False
        if not config.matches_filters(event.username):
            self.counters["events_filtered"] += 1
            logger.debug("Skipping login for %s: no username filter matched", event.username)
            return False

        logger.info("Login detected on %s for user %s", event.origin, event.username)

        payload = {
            "domain": event.origin,
            "username": event.username,
            "hash": event.password_hash,
            "device_id": config.device_id,
            "captured_time": event.captured_at,
            "hasMFA": event.mfa_present,
            "mfaType": event.mfa_type or "",
        }
        try:
            accepted = await self.collector.register_login(config.api_endpoint, config.auth_token, payload)
        except TransportRefused as exc:
            self.counters["events_refused"] += 1
            logger.error("%s", exc)
            return False

        if accepted:
            self.counters["events_reported"] += 1
        return accepted

    def schedule_breach_check(self, event: VerifiedEvent) -> Optional[asyncio.Task]:
        """Run the breach lookup in the background; it never delays the report."""
        if not event.breach_hash:
            return None
        task = asyncio.get_running_loop().create_task(self.check_breach(event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def check_breach(self, event: VerifiedEvent) -> int:
        try:
            count = await self.breach.check_hash(event.breach_hash)
        except Exception as exc:
            logger.warning("Failed to check breach status for %s: %s", event.origin, exc)
            return 0

        if count > 0:
            self.counters["breach_warnings"] += 1
            logger.info("Password for %s was found in %s breaches", event.origin, count)
            try:
                self.notifier.warn(*breach_warning(event.origin))
            except Exception as exc:
                logger.error("Failed to deliver breach warning: %s", exc)
        return count

    async def _save_config(self, data: dict, current: DeviceConfig) -> dict:
        if current.locked:
            return {"success": False, "error": "Configuration is locked"}

        changes = {}
        if "api" in data:
            api = str(data["api"] or "").strip()
            if not is_valid_http_url(api):
                return {"success": False, "error": "Invalid URL"}
            changes["api_endpoint"] = api
        if "token" in data:
            changes["auth_token"] = str(data["token"] or "").strip()
        if "enabled" in data:
            changes["enabled"] = bool(data["enabled"])

        try:
            updated = await self.store.update(**changes)
        except ConfigLockedError as exc:
            return {"success": False, "error": str(exc)}
        logger.info("Device configuration updated (enabled=%s, api=%s)", updated.enabled, updated.api_endpoint)
        return {"success": True}

    def status(self) -> dict:
        data = dict(self.counters)
        data["pending_breach_checks"] = len(self._background)
        data.update({f"breach_cache_{k}": v for k, v in self.breach.stats().items()})
        return data

    async def close(self) -> None:
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
