"""Page agent: observes a page and reports verified logins."""

from .classifier import classify
from .client import CoordinatorClient
from .clock import Clock, LoopClock
from .context import LoginAgent
from .correlation import CorrelationStateMachine
from .debounce import DebounceGuard
from .models import (
    CaptureBuffer,
    FieldDescriptor,
    NodeInfo,
    PageSnapshot,
    PendingAttempt,
    VerifiedEvent,
    origin_of,
)
from .observer import Observer
from .outcome import OutcomeDetector

__all__ = [
    "CaptureBuffer",
    "Clock",
    "CoordinatorClient",
    "CorrelationStateMachine",
    "DebounceGuard",
    "FieldDescriptor",
    "LoginAgent",
    "LoopClock",
    "NodeInfo",
    "Observer",
    "OutcomeDetector",
    "PageSnapshot",
    "PendingAttempt",
    "VerifiedEvent",
    "classify",
    "origin_of",
]
