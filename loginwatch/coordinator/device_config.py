"""Persisted device configuration."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import string
from dataclasses import dataclass, field, replace
from pathlib import Path

from ..constants import DEFAULT_COLLECTOR_URL
from ..errors import ConfigLockedError

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_device_id() -> str:
    return "device_" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(22))


@dataclass
class DeviceConfig:
    """Settings the coordinator acts on, stored as ``{api, id, enabled, token, locked, filters}``."""

    device_id: str = ""
    api_endpoint: str = DEFAULT_COLLECTOR_URL
    auth_token: str = ""
    enabled: bool = True
    locked: bool = False
    username_filters: list[str] = field(default_factory=list)

    def to_record(self) -> dict:
        return {
            "api": self.api_endpoint,
            "id": self.device_id,
            "enabled": self.enabled,
            "token": self.auth_token,
            "locked": self.locked,
            "filters": list(self.username_filters),
        }

    @classmethod
    def from_record(cls, record: dict) -> "DeviceConfig":
        """Build from a stored record, migrating the legacy ``deviceId`` field."""
        defaults = cls()
        device_id = record.get("id") or record.get("deviceId") or ""
        filters = record.get("filters")
        if not isinstance(filters, list):
            filters = []
        return cls(
            device_id=str(device_id),
            api_endpoint=str(record.get("api") or defaults.api_endpoint),
            auth_token=str(record.get("token") or ""),
            enabled=bool(record.get("enabled", defaults.enabled)),
            locked=bool(record.get("locked", defaults.locked)),
            username_filters=[str(item) for item in filters if item],
        )

    def matches_filters(self, username: str) -> bool:
        """True if no filters are set or the username contains one of them."""
        if not self.username_filters:
            return True
        return any(item in username for item in self.username_filters)


class DeviceConfigStore:
    """Loads and saves the device configuration JSON file.

    First-run id generation is a read-modify-write, so every access goes
    through one lock.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> tuple[DeviceConfig, bool]:
        """Return the stored config and whether it needs writing back."""
        if not self.path.exists():
            return DeviceConfig(), True
        try:
            record = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read device config %s, using defaults: %s", self.path, exc)
            return DeviceConfig(), True
        if not isinstance(record, dict):
            logger.warning("Malformed device config %s, using defaults", self.path)
            return DeviceConfig(), True
        migrated = "deviceId" in record
        return DeviceConfig.from_record(record), migrated

    def _write(self, config: DeviceConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(config.to_record(), indent=2))
        tmp.replace(self.path)

    async def load(self) -> DeviceConfig:
        async with self._lock:
            config, dirty = self._read()
            if not config.device_id:
                config.device_id = generate_device_id()
                logger.info("Generated device id %s", config.device_id)
                dirty = True
            if dirty:
                self._write(config)
            return config

    async def save(self, config: DeviceConfig) -> None:
        async with self._lock:
            self._write(config)

    async def update(self, **changes) -> DeviceConfig:
        """Apply changes to the stored config atomically and return the result."""
        async with self._lock:
            current, _ = self._read()
            if current.locked:
                raise ConfigLockedError("Configuration is locked")
            if not current.device_id:
                current.device_id = generate_device_id()
            updated = replace(current, **changes)
            self._write(updated)
            return updated
