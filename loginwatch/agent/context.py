"""One agent per page context."""

from __future__ import annotations

import logging
from typing import Optional

from ..config import Settings
from .clock import Clock, LoopClock
from .correlation import CorrelationStateMachine
from .debounce import DebounceGuard
from .models import CaptureBuffer
from .observer import Observer
from .outcome import Emitter, OutcomeDetector
from .page import Document

logger = logging.getLogger(__name__)


class LoginAgent:
    """Wires observer, capture buffer, state machine and outcome detector for one document."""

    def __init__(
        self,
        document: Document,
        emit: Emitter,
        *,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        debounce: Optional[DebounceGuard] = None,
    ):
        settings = settings or Settings()
        self.document = document
        self.clock = clock or LoopClock()
        self.buffer = CaptureBuffer()
        self.debounce = debounce or DebounceGuard(self.clock, settings.debounce_window)
        self.observer = Observer(
            document,
            self.buffer,
            on_trigger=self._on_trigger,
            on_mfa_field=self._on_mfa_field,
            heuristics=settings.heuristics,
        )
        self.outcome = OutcomeDetector(
            document,
            self.clock,
            self.debounce,
            emit,
            heuristics=settings.heuristics,
            initial_delay=settings.outcome_initial_delay,
            poll_interval=settings.outcome_poll_interval,
            ceiling=settings.outcome_ceiling,
        )
        self.machine = CorrelationStateMachine(
            document,
            self.buffer,
            self.observer,
            self.debounce,
            self.outcome,
            self.clock,
            mfa_wait=settings.mfa_wait,
        )

    def start(self) -> None:
        self.observer.start()
        logger.debug("Login agent attached to %s", self.document.location)

    def close(self) -> None:
        self.machine.cancel()
        self.buffer.clear()

    @property
    def pending(self):
        return self.machine.pending

    def _on_trigger(self, source: str) -> None:
        try:
            self.machine.trigger(source)
        except Exception:
            logger.exception("Login trigger failed")

    def _on_mfa_field(self, mfa_type: str) -> None:
        self.machine.confirm_mfa(mfa_type)
