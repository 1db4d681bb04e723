"""k-anonymity breach lookups against a pwned-passwords range API."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, Optional

import aiohttp

from ..cache import BreachCache
from ..constants import BREACH_PREFIX_LENGTH, BREACH_USER_AGENT, DEFAULT_BREACH_API_URL
from ..errors import BreachCheckError

logger = logging.getLogger(__name__)

SHA1_HEX = re.compile(r"^[0-9A-Fa-f]{40}$")


def find_suffix_count(body: str, suffix: str) -> int:
    """Scan ``SUFFIX:COUNT`` lines for an exact, case-insensitive suffix match."""
    suffix = suffix.upper()
    for line in body.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split(":")
        if len(parts) != 2:
            continue
        if parts[0].strip().upper() != suffix:
            continue
        try:
            return int(parts[1].strip())
        except ValueError as exc:
            raise BreachCheckError(f"failed to parse breach count {parts[1]!r}") from exc
    return 0


class BreachCheckClient:
    """Sends only a fixed-length hash prefix and matches the suffix locally."""

    def __init__(self, base_url: str = DEFAULT_BREACH_API_URL, timeout: float = 10.0):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout

    async def check_hash(self, hash_hex: str) -> int:
        """Return how often the SHA-1 hash appears in breaches (0 if never)."""
        if not SHA1_HEX.match(hash_hex or ""):
            raise ValueError(f"invalid hash length: expected 40 hex characters, got {len(hash_hex or '')}")

        hash_hex = hash_hex.upper()
        prefix, suffix = hash_hex[:BREACH_PREFIX_LENGTH], hash_hex[BREACH_PREFIX_LENGTH:]
        url = self.base_url + prefix

        logger.debug("Checking password hash prefix %s", prefix)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    url,
                    headers={"User-Agent": BREACH_USER_AGENT},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status != 200:
                        raise BreachCheckError(f"breach API returned status {resp.status}")
                    body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise BreachCheckError(f"failed to reach breach API: {exc}") from exc

        count = find_suffix_count(body, suffix)
        if count:
            logger.debug("Password hash prefix %s found in breaches (%s)", prefix, count)
        return count


class BreachService:
    """Breach lookups with a TTL cache in front of the range API."""

    def __init__(self, client: Optional[BreachCheckClient] = None, cache: Optional[BreachCache] = None):
        self.client = client or BreachCheckClient()
        self.cache = cache or BreachCache()

    async def check_hash(self, hash_hex: str) -> int:
        cached = self.cache.get(hash_hex)
        if cached is not None:
            return cached

        logger.debug("Cache miss for hash prefix %s, querying breach API", hash_hex[:5])
        # Errors propagate and nothing is cached for them
        count = await self.client.check_hash(hash_hex)
        self.cache.set(hash_hex, count)
        return count

    async def is_breached(self, hash_hex: str) -> bool:
        return await self.check_hash(hash_hex) > 0

    def stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
