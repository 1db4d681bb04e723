"""Page observation: registers listeners on login fields and submit controls."""

from __future__ import annotations

import logging
import weakref
from typing import Callable, Optional

from ..config import DEFAULT_HEURISTICS, Heuristics
from ..constants import MFA_TYPE_TOTP, InputRole
from .classifier import classify
from .models import CaptureBuffer, ObservedField, origin_of
from .page import Document

logger = logging.getLogger(__name__)

FIELD_EVENTS = ("input", "change")


class Observer:
    """Idempotently scans a mutating page.

    Membership is tracked in a ``WeakSet`` so a rescan only touches elements it
    has not seen, never attaches a second listener, and never keeps a removed
    element alive.
    """

    def __init__(
        self,
        document: Document,
        buffer: CaptureBuffer,
        *,
        on_trigger: Callable[[str], None],
        on_mfa_field: Callable[[str], None],
        heuristics: Heuristics = DEFAULT_HEURISTICS,
    ):
        self.document = document
        self.buffer = buffer
        self.heuristics = heuristics
        self._on_trigger = on_trigger
        self._on_mfa_field = on_mfa_field
        self._registered: weakref.WeakSet = weakref.WeakSet()
        self._observed: list[ObservedField] = []
        self._started = False
        self.origin: Optional[str] = None
        self.scan_count = 0

    def start(self) -> None:
        """Initial scan, then rescan whenever the page gains nodes."""
        if self._started:
            return
        self._started = True
        self.scan()
        self.document.on_structure_change(self.scan)

    def scan(self, full: bool = False) -> None:
        """Register everything not yet registered.

        A full scan also clears the capture buffer, for a page that has
        replaced its login flow wholesale.
        """
        self.scan_count += 1
        self.sync_origin()
        if full:
            self.buffer.clear()
        self._observed = [observed for observed in self._observed if observed.alive]

        for form in self.document.forms():
            # Known forms still get their late fields registered
            for element in form.fields():
                self._register_field(element)
            if form in self._registered:
                continue
            form.add_listener("submit", self._submit_handler("submit"))
            self._registered.add(form)

        for element in self.document.fields():
            self._register_field(element)

        for control in self.document.submit_controls():
            if control in self._registered:
                continue
            control.add_listener("click", self._submit_handler("click"))
            self._registered.add(control)

    def sync_origin(self) -> bool:
        """Forget captured values and fields of a previous origin.

        Returns True if the document moved to another origin since the last check.
        """
        origin = origin_of(self.document.location)
        previous, self.origin = self.origin, origin
        if previous is None or previous == origin:
            return False
        logger.debug("Page moved from %s to %s, dropping captured values", previous, origin)
        self.buffer.clear()
        self._observed = []
        return True

    def _register_field(self, element) -> None:
        if element in self._registered:
            return
        self._registered.add(element)

        role = classify(element.descriptor(), self.heuristics)
        if role is InputRole.UNCLASSIFIED:
            return

        observed = ObservedField(role=role, element_ref=weakref.ref(element))
        self._observed.append(observed)
        handler = self._value_handler(observed)
        for event in FIELD_EVENTS:
            element.add_listener(event, handler)
        logger.debug("Monitoring %s field %r", role, element.descriptor().name)

        if role is InputRole.MFA_CODE:
            self._on_mfa_field(MFA_TYPE_TOTP)

    def _value_handler(self, observed: ObservedField) -> Callable[[], None]:
        # The handler reaches the element only through the weak ref
        def handler() -> None:
            element = observed.element
            if element is None:
                return
            value = element.value or ""
            observed.last_value = value
            self.buffer.update(observed.role, value)

        return handler

    def _submit_handler(self, source: str) -> Callable[[], None]:
        def handler() -> None:
            self._on_trigger(source)

        return handler

    def live_fields(self, role: InputRole) -> list[ObservedField]:
        return [observed for observed in self._observed if observed.role is role and observed.alive]

    def has_mfa_field(self) -> bool:
        return bool(self.live_fields(InputRole.MFA_CODE))

    def paired_credentials(self) -> Optional[tuple[str, str]]:
        """Pair known username and password fields by position."""
        usernames = self.live_fields(InputRole.USERNAME)
        passwords = self.live_fields(InputRole.PASSWORD)
        for user_field, pass_field in zip(usernames, passwords):
            user_el, pass_el = user_field.element, pass_field.element
            if user_el is None or pass_el is None:
                continue
            username, password = user_el.value or "", pass_el.value or ""
            if username and password:
                return username, password
        return None

    def page_credentials(self) -> Optional[tuple[str, str]]:
        """Last resort: the first password field and first username-like field anywhere."""
        username = password = None
        for element in self.document.fields():
            role = classify(element.descriptor(), self.heuristics)
            if role is InputRole.PASSWORD and password is None:
                password = element.value or ""
            elif role is InputRole.USERNAME and username is None:
                username = element.value or ""
            if username is not None and password is not None:
                break
        if username and password:
            return username, password
        return None
