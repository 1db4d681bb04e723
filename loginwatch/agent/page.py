"""Live page interface the agent observes.

Anything that can enumerate forms, fields and submit-like controls, deliver
their events and report structural changes can host an agent: a browser page
driven through Playwright, or an in-memory document in tests.
"""

from __future__ import annotations

from typing import Callable, Iterable, Protocol

from .models import FieldDescriptor, PageSnapshot

Listener = Callable[[], None]


class FieldElement(Protocol):
    """An input control. Events: ``input``, ``change``."""

    @property
    def value(self) -> str: ...

    def descriptor(self) -> FieldDescriptor: ...

    def add_listener(self, event: str, callback: Listener) -> None: ...


class FormElement(Protocol):
    """A form. Events: ``submit``."""

    def fields(self) -> Iterable[FieldElement]: ...

    def add_listener(self, event: str, callback: Listener) -> None: ...


class ControlElement(Protocol):
    """A button or submit input. Events: ``click``."""

    def add_listener(self, event: str, callback: Listener) -> None: ...


class Document(Protocol):
    """One loaded document (a page context)."""

    @property
    def location(self) -> str: ...

    def forms(self) -> Iterable[FormElement]: ...

    def fields(self) -> Iterable[FieldElement]:
        """Every input on the page, in document order, inside forms or not."""
        ...

    def submit_controls(self) -> Iterable[ControlElement]: ...

    def on_structure_change(self, callback: Listener) -> None:
        """Register a callback fired whenever nodes are added to the page."""
        ...

    async def snapshot(self) -> PageSnapshot: ...
