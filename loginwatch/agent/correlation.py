"""Correlates a submission, an optional second factor and the page outcome.

States::

    IDLE -> MFA_WAIT -> MFA_CONFIRMED? -> OUTCOME_CHECK -> DISPATCHED | DISCARDED
         \\-> MFA_CONFIRMED ---------/

At most one attempt is live per page context; a new trigger cancels the old
one. Every wait goes through the injected clock so tests can drive it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from ..constants import DEFAULT_MFA_WAIT, MFA_TYPE_TOTP, AttemptState
from .clock import Clock
from .debounce import DebounceGuard
from .models import CaptureBuffer, PendingAttempt, origin_of
from .observer import Observer
from .page import Document

logger = logging.getLogger(__name__)


class OutcomeRunner(Protocol):
    async def run(
        self,
        origin: str,
        username: str,
        password: str,
        mfa_present: bool,
        mfa_type: Optional[str],
    ) -> bool: ...


class CorrelationStateMachine:
    """Turns submit triggers into at most one verified login per attempt."""

    def __init__(
        self,
        document: Document,
        buffer: CaptureBuffer,
        observer: Observer,
        debounce: DebounceGuard,
        outcome: OutcomeRunner,
        clock: Clock,
        mfa_wait: float = DEFAULT_MFA_WAIT,
    ):
        self.document = document
        self.buffer = buffer
        self.observer = observer
        self.debounce = debounce
        self.outcome = outcome
        self.clock = clock
        self.mfa_wait = mfa_wait
        self.pending: Optional[PendingAttempt] = None

    def _assemble(self) -> Optional[tuple[str, str]]:
        if self.buffer.has_credentials():
            return self.buffer.username, self.buffer.password
        return self.observer.paired_credentials() or self.observer.page_credentials()

    def _mfa_known(self) -> bool:
        return bool(self.buffer.mfa_code) or self.observer.has_mfa_field()

    def trigger(self, source: str = "submit") -> Optional[PendingAttempt]:
        """Handle a submit or click. Must be called from the event loop."""
        self.observer.sync_origin()
        credentials = self._assemble()
        if credentials is None:
            logger.debug("Ignoring %s: no username/password pair on the page", source)
            return None
        username, password = credentials

        origin = origin_of(self.document.location)
        if self.debounce.is_recent(origin, username):
            logger.debug("Preventing duplicate login submission for %s on %s", username, origin)
            return None

        self._supersede()

        loop = asyncio.get_running_loop()
        now = self.clock.now()
        attempt = PendingAttempt(origin=origin, username=username, password=password, created_at=now)
        if self._mfa_known():
            attempt.state = AttemptState.MFA_CONFIRMED
            attempt.mfa_type = MFA_TYPE_TOTP
        else:
            attempt.state = AttemptState.MFA_WAIT
            attempt.mfa_deadline_at = now + self.mfa_wait
            attempt.mfa_timer = loop.create_task(self.clock.sleep(self.mfa_wait))

        self.pending = attempt
        attempt.task = loop.create_task(self._run(attempt))
        logger.debug("Login attempt on %s started by %s (%s)", origin, source, attempt.state.value)
        return attempt

    def confirm_mfa(self, mfa_type: str = MFA_TYPE_TOTP) -> bool:
        """Fast path for a second-factor field appearing during the wait."""
        attempt = self.pending
        if attempt is None or attempt.state is not AttemptState.MFA_WAIT:
            return False
        attempt.state = AttemptState.MFA_CONFIRMED
        attempt.mfa_type = mfa_type
        if attempt.mfa_timer is not None:
            attempt.mfa_timer.cancel()
        logger.debug("Second factor observed on %s, ending wait early", attempt.origin)
        return True

    def _supersede(self) -> None:
        previous = self.pending
        if previous is not None and not previous.state.settled:
            logger.debug("Superseding login attempt on %s", previous.origin)
            previous.cancel()
        self.pending = None

    def cancel(self) -> None:
        self._supersede()

    async def _run(self, attempt: PendingAttempt) -> None:
        try:
            if attempt.state is AttemptState.MFA_WAIT and attempt.mfa_timer is not None:
                # wait() does not raise when the timer itself is cancelled
                await asyncio.wait({attempt.mfa_timer})
                if attempt.state is AttemptState.MFA_WAIT and self._mfa_known():
                    attempt.state = AttemptState.MFA_CONFIRMED
                    attempt.mfa_type = MFA_TYPE_TOTP

            if self.debounce.is_recent(attempt.origin, attempt.username):
                logger.debug("Preventing duplicate login dispatch for %s", attempt.username)
                attempt.state = AttemptState.DISCARDED
                return

            attempt.state = AttemptState.OUTCOME_CHECK
            emitted = await self.outcome.run(
                attempt.origin,
                attempt.username,
                attempt.password,
                attempt.mfa_present,
                attempt.mfa_type,
            )
            if emitted:
                attempt.state = AttemptState.DISPATCHED
                self.buffer.clear()
            else:
                attempt.state = AttemptState.DISCARDED
        except asyncio.CancelledError:
            attempt.state = AttemptState.DISCARDED
            raise
        except Exception:
            logger.exception("Login attempt on %s failed", attempt.origin)
            attempt.state = AttemptState.DISCARDED
        finally:
            if attempt.mfa_timer is not None:
                attempt.mfa_timer.cancel()
            attempt.password = ""
            if self.pending is attempt:
                self.pending = None
