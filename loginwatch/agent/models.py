"""Page agent data models."""

from __future__ import annotations

import asyncio
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlsplit

from ..constants import AttemptState, InputRole
from ..hashing import digest_password


def origin_of(url: str) -> str:
    """Return ``scheme://host:port`` for a page URL, with the default port filled in."""
    try:
        parts = urlsplit(url or "")
        port = parts.port
    except ValueError:
        return ""
    if not parts.scheme or not parts.hostname:
        return ""
    if port is None:
        port = 443 if parts.scheme == "https" else 80
    return f"{parts.scheme}://{parts.hostname}:{port}"


def _to_int(value: Any) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    # Browsers report -1 when maxlength is unset
    return number if number >= 0 else None


@dataclass(frozen=True)
class FieldDescriptor:
    """Immutable snapshot of the attributes of one input control."""

    control_type: str = "text"
    name: str = ""
    id: str = ""
    placeholder: str = ""
    class_name: str = ""
    max_length: Optional[int] = None
    autocomplete: str = ""
    input_mode: str = ""

    @classmethod
    def from_attributes(cls, attrs: dict) -> "FieldDescriptor":
        """Build a descriptor from a DOM attribute mapping."""
        return cls(
            control_type=str(attrs.get("controlType") or attrs.get("type") or "text").lower(),
            name=str(attrs.get("name") or ""),
            id=str(attrs.get("elementId") or attrs.get("id") or ""),
            placeholder=str(attrs.get("placeholder") or ""),
            class_name=str(attrs.get("className") or attrs.get("class") or ""),
            max_length=_to_int(attrs.get("maxLength")),
            autocomplete=str(attrs.get("autocomplete") or "").lower(),
            input_mode=str(attrs.get("inputMode") or attrs.get("inputmode") or "").lower(),
        )


@dataclass
class ObservedField:
    """A classified field. Holds its element weakly so removal invalidates it."""

    role: InputRole
    element_ref: weakref.ref
    last_value: str = ""

    @property
    def element(self):
        return self.element_ref()

    @property
    def alive(self) -> bool:
        return self.element_ref() is not None


@dataclass
class CaptureBuffer:
    """Latest value per role for one page context."""

    username: Optional[str] = None
    password: Optional[str] = None
    mfa_code: Optional[str] = None

    def update(self, role: InputRole, value: str) -> None:
        if role is InputRole.USERNAME:
            self.username = value
        elif role is InputRole.PASSWORD:
            self.password = value
        elif role is InputRole.MFA_CODE:
            self.mfa_code = value

    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    def clear(self) -> None:
        self.username = None
        self.password = None
        self.mfa_code = None


@dataclass
class PendingAttempt:
    """A submitted login waiting on its second factor and outcome."""

    origin: str
    username: str
    password: str
    created_at: float
    mfa_deadline_at: Optional[float] = None
    state: AttemptState = AttemptState.IDLE
    mfa_type: Optional[str] = None
    # Cancelling the task discards the attempt
    task: Optional[asyncio.Task] = field(default=None, repr=False)
    mfa_timer: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def mfa_present(self) -> bool:
        return self.mfa_type is not None

    def cancel(self) -> None:
        if self.mfa_timer is not None:
            self.mfa_timer.cancel()
        if self.task is not None:
            self.task.cancel()
        if not self.state.settled:
            self.state = AttemptState.DISCARDED


@dataclass
class DebounceRecord:
    origin: str
    username: str
    last_sent_at: float


@dataclass
class VerifiedEvent:
    """A login judged successful. Carries digests only, never the password."""

    origin: str
    username: str
    password_hash: str
    breach_hash: str
    mfa_present: bool = False
    mfa_type: Optional[str] = None
    captured_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def capture(
        cls,
        origin: str,
        username: str,
        password: str,
        mfa_present: bool = False,
        mfa_type: Optional[str] = None,
    ) -> "VerifiedEvent":
        digest = digest_password(password)
        return cls(
            origin=origin,
            username=username,
            password_hash=digest.sha512,
            breach_hash=digest.sha1,
            mfa_present=mfa_present,
            mfa_type=mfa_type if mfa_present else None,
        )

    def to_dict(self) -> dict:
        return {
            "origin": self.origin,
            "username": self.username,
            "passwordHash": self.password_hash,
            "breachHash": self.breach_hash,
            "mfaPresent": self.mfa_present,
            "mfaType": self.mfa_type,
            "capturedAt": self.captured_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VerifiedEvent":
        if not isinstance(data, dict):
            raise ValueError("event payload must be an object")
        missing = [key for key in ("origin", "username", "passwordHash") if not data.get(key)]
        if missing:
            raise ValueError(f"event payload missing {', '.join(missing)}")
        kwargs = {}
        if data.get("capturedAt"):
            kwargs["captured_at"] = str(data["capturedAt"])
        return cls(
            origin=str(data["origin"]),
            username=str(data["username"]),
            password_hash=str(data["passwordHash"]),
            breach_hash=str(data.get("breachHash") or ""),
            mfa_present=bool(data.get("mfaPresent")),
            mfa_type=data.get("mfaType") or None,
            **kwargs,
        )


@dataclass
class NodeInfo:
    """Flattened view of one page element, as seen by the outcome detector."""

    tag: str = ""
    id: str = ""
    class_name: str = ""
    type: str = ""
    text: str = ""
    href: str = ""
    role: str = ""
    invalid: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "NodeInfo":
        return cls(
            tag=str(data.get("tag") or "").lower(),
            id=str(data.get("id") or ""),
            class_name=str(data.get("className") or data.get("class") or ""),
            type=str(data.get("type") or "").lower(),
            text=str(data.get("text") or ""),
            href=str(data.get("href") or ""),
            role=str(data.get("role") or "").lower(),
            invalid=bool(data.get("invalid")),
        )


@dataclass
class PageSnapshot:
    location: str
    nodes: list[NodeInfo] = field(default_factory=list)
