"""Login outcome detection.

After a submission the page is polled for failure and success signals. When
neither shows up before the ceiling the login is assumed to have worked; this
trades precision for completeness, since many sites give no visible signal.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..constants import (
    DEFAULT_OUTCOME_CEILING,
    DEFAULT_OUTCOME_INITIAL_DELAY,
    DEFAULT_OUTCOME_POLL_INTERVAL,
    Outcome,
)
from .clock import Clock
from .debounce import DebounceGuard
from .models import NodeInfo, PageSnapshot, VerifiedEvent
from .page import Document

logger = logging.getLogger(__name__)

Emitter = Callable[[VerifiedEvent], Awaitable[object]]

CREDENTIAL_INPUT_TYPES = {"password", "email", "text", ""}
CONTROL_TAGS = {"a", "button", "input"}


def _marker_text(node: NodeInfo) -> str:
    return f"{node.id} {node.class_name}".lower()


class OutcomeDetector:
    """Polls a page for the result of a login submission."""

    def __init__(
        self,
        document: Document,
        clock: Clock,
        debounce: DebounceGuard,
        emit: Emitter,
        *,
        heuristics: Heuristics = DEFAULT_HEURISTICS,
        initial_delay: float = DEFAULT_OUTCOME_INITIAL_DELAY,
        poll_interval: float = DEFAULT_OUTCOME_POLL_INTERVAL,
        ceiling: float = DEFAULT_OUTCOME_CEILING,
    ):
        self.document = document
        self.clock = clock
        self.debounce = debounce
        self.emit = emit
        self.heuristics = heuristics
        self.initial_delay = initial_delay
        self.poll_interval = poll_interval
        self.ceiling = ceiling

    async def run(
        self,
        origin: str,
        username: str,
        password: str,
        mfa_present: bool,
        mfa_type: Optional[str],
    ) -> bool:
        """Poll, then either emit a verified event or discard. Returns True if emitted."""
        outcome = await self.detect()
        if outcome is Outcome.FAILURE:
            logger.info("Login on %s for %s failed, discarding", origin, username)
            return False

        if outcome is Outcome.TIMEOUT:
            logger.info("No outcome signal on %s within %.1fs, assuming success", origin, self.ceiling)

        event = VerifiedEvent.capture(origin, username, password, mfa_present, mfa_type)
        self.debounce.record(origin, username)
        logger.info("Login detected on %s for user %s (mfa=%s)", origin, username, mfa_present)
        await self.emit(event)
        return True

    async def detect(self) -> Outcome:
        started = self.clock.now()
        baseline = self.document.location

        await self.clock.sleep(self.initial_delay)
        while True:
            snapshot = await self._snapshot(baseline)
            if self.is_failure(snapshot):
                return Outcome.FAILURE
            if self.is_success(snapshot, baseline):
                return Outcome.SUCCESS
            if self.clock.now() - started >= self.ceiling:
                return Outcome.TIMEOUT
            await self.clock.sleep(self.poll_interval)

    async def _snapshot(self, baseline: str) -> PageSnapshot:
        try:
            return await self.document.snapshot()
        except Exception as exc:
            # Usually a navigation tore down the old document mid-poll
            logger.debug("Page snapshot failed: %s", exc)
            location = baseline
            try:
                location = self.document.location
            except Exception:
                pass
            return PageSnapshot(location=location)

    def is_failure(self, snapshot: PageSnapshot) -> bool:
        markers = self.heuristics.failure_markers
        keywords = self.heuristics.failure_keywords
        for node in snapshot.nodes:
            if node.tag == "input":
                if node.type in CREDENTIAL_INPUT_TYPES and (
                    node.invalid or "is-invalid" in node.class_name.lower()
                ):
                    return True
                continue
            if not node.text:
                continue
            if not any(marker in _marker_text(node) for marker in markers):
                continue
            text = node.text.lower()
            if any(keyword in text for keyword in keywords):
                return True
        return False

    def is_success(self, snapshot: PageSnapshot, baseline: str) -> bool:
        if snapshot.location and snapshot.location != baseline:
            return True
        success = self.heuristics.success_markers
        authenticated = self.heuristics.authenticated_markers
        for node in snapshot.nodes:
            marker_text = _marker_text(node)
            if any(marker in marker_text for marker in success):
                return True
            if self._is_authenticated_indicator(node, marker_text, authenticated):
                return True
        return False

    @staticmethod
    def _is_authenticated_indicator(node: NodeInfo, marker_text: str, markers: list[str]) -> bool:
        if any(marker in marker_text for marker in markers):
            return True
        if node.tag in CONTROL_TAGS or node.role in ("button", "menuitem"):
            haystack = f"{node.text} {node.href}".lower()
            return any(marker in haystack for marker in markers)
        return False
