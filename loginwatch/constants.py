"""Centralized constants for loginwatch.

This module contains enums and defaults shared by the page agent and the
coordinator so both sides agree on roles, states and message names.
"""

from enum import Enum


class InputRole(str, Enum):
    """Role a form field plays in an authentication flow."""

    USERNAME = "username"
    PASSWORD = "password"
    MFA_CODE = "mfa_code"
    UNCLASSIFIED = "unclassified"

    def __str__(self) -> str:
        return self.value


class AttemptState(str, Enum):
    """Lifecycle of a pending login attempt."""

    IDLE = "idle"
    MFA_WAIT = "mfa_wait"
    MFA_CONFIRMED = "mfa_confirmed"
    OUTCOME_CHECK = "outcome_check"
    DISPATCHED = "dispatched"
    DISCARDED = "discarded"

    @property
    def settled(self) -> bool:
        return self in (AttemptState.DISPATCHED, AttemptState.DISCARDED)


class Outcome(str, Enum):
    """Result of polling a page after a login submission."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class MessageType(str, Enum):
    """Messages understood by the coordinator."""

    LOGIN_DETECTED = "LOGIN_DETECTED"
    GET_DEVICE_ID = "GET_DEVICE_ID"
    GET_CONFIG = "GET_CONFIG"
    SAVE_CONFIG = "SAVE_CONFIG"
    VERIFY_TOKEN = "VERIFY_TOKEN"


# Only category of second factor the classifier can recognise
MFA_TYPE_TOTP = "TOTP"

# Agent timings (seconds)
DEFAULT_MFA_WAIT = 8.0
DEFAULT_DEBOUNCE_WINDOW = 1.0
DEFAULT_OUTCOME_INITIAL_DELAY = 1.0
DEFAULT_OUTCOME_POLL_INTERVAL = 0.5
DEFAULT_OUTCOME_CEILING = 5.0

# Breach cache (seconds)
DEFAULT_BREACH_CACHE_TTL = 3600
DEFAULT_BREACH_SWEEP_INTERVAL = 1800

BREACH_PREFIX_LENGTH = 5
DEFAULT_BREACH_API_URL = "https://api.pwnedpasswords.com/range/"
BREACH_USER_AGENT = "loginwatch-password-monitor"

DEFAULT_COLLECTOR_URL = "http://localhost:8080"
DEFAULT_REGISTER_PATH = "/api/login/register"
HEALTH_CHECK_PATH = "/api/health"
