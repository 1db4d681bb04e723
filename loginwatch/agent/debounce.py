"""Duplicate-dispatch suppression."""

from __future__ import annotations

import logging

from ..constants import DEFAULT_DEBOUNCE_WINDOW
from .clock import Clock
from .models import DebounceRecord

logger = logging.getLogger(__name__)


class DebounceGuard:
    """Remembers recent dispatches per (origin, username).

    Records are never deleted explicitly; they stop counting once older than
    the window and are pruned on the next write.
    """

    def __init__(self, clock: Clock, window: float = DEFAULT_DEBOUNCE_WINDOW):
        self.clock = clock
        self.window = window
        self._records: dict[tuple[str, str], DebounceRecord] = {}

    def is_recent(self, origin: str, username: str) -> bool:
        record = self._records.get((origin, username))
        if record is None:
            return False
        return self.clock.now() - record.last_sent_at < self.window

    def record(self, origin: str, username: str) -> DebounceRecord:
        now = self.clock.now()
        self._prune(now)
        record = DebounceRecord(origin=origin, username=username, last_sent_at=now)
        self._records[(origin, username)] = record
        return record

    def _prune(self, now: float) -> None:
        stale = [key for key, rec in self._records.items() if now - rec.last_sent_at >= self.window]
        for key in stale:
            del self._records[key]

    def __len__(self) -> int:
        return len(self._records)
