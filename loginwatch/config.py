"""Configuration management for loginwatch."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .constants import (
    DEFAULT_BREACH_API_URL,
    DEFAULT_BREACH_CACHE_TTL,
    DEFAULT_BREACH_SWEEP_INTERVAL,
    DEFAULT_DEBOUNCE_WINDOW,
    DEFAULT_MFA_WAIT,
    DEFAULT_OUTCOME_CEILING,
    DEFAULT_OUTCOME_INITIAL_DELAY,
    DEFAULT_OUTCOME_POLL_INTERVAL,
    DEFAULT_REGISTER_PATH,
)

logger = logging.getLogger(__name__)


# Default heuristics for field classification and outcome detection. These can
# be overridden via config/heuristics.yaml without touching code.
DEFAULT_USERNAME_KEYWORDS: list[str] = [
    "user",
    "username",
    "email",
    "login",
    "account",
    "id",
    "identifier",
]

DEFAULT_MFA_KEYWORDS: list[str] = [
    "totp",
    "mfa",
    "otp",
    "code",
    "token",
    "verification",
    "verify",
    "authenticator",
    "auth",
    "2fa",
    "twofactor",
    "security",
    "sms",
    "multifactor",
]

DEFAULT_FAILURE_KEYWORDS: list[str] = [
    "invalid",
    "incorrect",
    "wrong",
    "failed",
    "error",
    "denied",
    "unauthorized",
    "authentication failed",
    "login failed",
    "bad credentials",
    "account locked",
    "too many attempts",
]

# Class/id fragments of elements that usually carry a login error message
DEFAULT_FAILURE_MARKERS: list[str] = [
    "error",
    "invalid",
    "fail",
    "alert-danger",
    "alert-error",
    "flash-error",
    "notification-error",
    "message-error",
    "login-error",
]

DEFAULT_SUCCESS_MARKERS: list[str] = [
    "welcome",
    "dashboard",
    "success",
]

# Fragments of controls that only exist once a user is signed in
DEFAULT_AUTHENTICATED_MARKERS: list[str] = [
    "logout",
    "log-out",
    "log out",
    "signout",
    "sign-out",
    "sign out",
    "user-menu",
    "usermenu",
    "profile-menu",
    "user-profile",
    "account-menu",
    "avatar",
]


@dataclass
class Heuristics:
    """Keyword sets driving the field classifier and the outcome detector."""

    username_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_USERNAME_KEYWORDS))
    mfa_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_MFA_KEYWORDS))
    failure_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_FAILURE_KEYWORDS))
    failure_markers: list[str] = field(default_factory=lambda: list(DEFAULT_FAILURE_MARKERS))
    success_markers: list[str] = field(default_factory=lambda: list(DEFAULT_SUCCESS_MARKERS))
    authenticated_markers: list[str] = field(
        default_factory=lambda: list(DEFAULT_AUTHENTICATED_MARKERS)
    )


DEFAULT_HEURISTICS = Heuristics()


@dataclass
class Settings:
    """Process settings loaded from environment."""

    # Coordinator server
    host: str = "127.0.0.1"
    port: int = 8765

    # Backend collector
    register_path: str = DEFAULT_REGISTER_PATH
    http_timeout: float = 10.0

    # Breach check
    breach_api_url: str = DEFAULT_BREACH_API_URL
    breach_cache_ttl: int = DEFAULT_BREACH_CACHE_TTL
    breach_sweep_interval: int = DEFAULT_BREACH_SWEEP_INTERVAL

    # Agent timings (seconds)
    mfa_wait: float = DEFAULT_MFA_WAIT
    debounce_window: float = DEFAULT_DEBOUNCE_WINDOW
    outcome_initial_delay: float = DEFAULT_OUTCOME_INITIAL_DELAY
    outcome_poll_interval: float = DEFAULT_OUTCOME_POLL_INTERVAL
    outcome_ceiling: float = DEFAULT_OUTCOME_CEILING

    log_level: str = "INFO"

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    heuristics: Heuristics = field(default_factory=Heuristics)

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)

    @property
    def device_config_path(self) -> Path:
        return self.data_dir / "device_config.json"


def _coerce_keywords(raw, default: list[str], label: str) -> list[str]:
    if raw is None:
        return list(default)
    if not isinstance(raw, list):
        logger.warning("Ignoring heuristics entry %s: expected a list", label)
        return list(default)
    items = [str(item).strip().lower() for item in raw if str(item or "").strip()]
    return items or list(default)


def load_heuristics(config_dir: Path) -> Heuristics:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return Heuristics()

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return Heuristics()

    if not isinstance(data, dict):
        logger.warning("Failed to parse heuristics.yaml: top level is not a mapping")
        return Heuristics()

    classifier_cfg = data.get("classifier") or {}
    outcome_cfg = data.get("outcome") or {}
    if not isinstance(classifier_cfg, dict):
        classifier_cfg = {}
    if not isinstance(outcome_cfg, dict):
        outcome_cfg = {}

    return Heuristics(
        username_keywords=_coerce_keywords(
            classifier_cfg.get("username_keywords"), DEFAULT_USERNAME_KEYWORDS, "username_keywords"
        ),
        mfa_keywords=_coerce_keywords(
            classifier_cfg.get("mfa_keywords"), DEFAULT_MFA_KEYWORDS, "mfa_keywords"
        ),
        failure_keywords=_coerce_keywords(
            outcome_cfg.get("failure_keywords"), DEFAULT_FAILURE_KEYWORDS, "failure_keywords"
        ),
        failure_markers=_coerce_keywords(
            outcome_cfg.get("failure_markers"), DEFAULT_FAILURE_MARKERS, "failure_markers"
        ),
        success_markers=_coerce_keywords(
            outcome_cfg.get("success_markers"), DEFAULT_SUCCESS_MARKERS, "success_markers"
        ),
        authenticated_markers=_coerce_keywords(
            outcome_cfg.get("authenticated_markers"),
            DEFAULT_AUTHENTICATED_MARKERS,
            "authenticated_markers",
        ),
    )


def _millis(name: str, default: float) -> float:
    """Read a millisecond env var and return seconds."""
    return int(os.getenv(name, str(int(default * 1000)))) / 1000.0


def load_settings() -> Settings:
    """Load settings from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))

    return Settings(
        host=os.getenv("LOGINWATCH_HOST", "127.0.0.1"),
        port=int(os.getenv("LOGINWATCH_PORT", "8765")),
        register_path=os.getenv("REGISTER_PATH", DEFAULT_REGISTER_PATH),
        http_timeout=float(os.getenv("HTTP_TIMEOUT", "10")),
        breach_api_url=os.getenv("BREACH_API_URL", DEFAULT_BREACH_API_URL),
        breach_cache_ttl=int(os.getenv("BREACH_CACHE_TTL_SECONDS", str(DEFAULT_BREACH_CACHE_TTL))),
        breach_sweep_interval=int(
            os.getenv("BREACH_SWEEP_INTERVAL_SECONDS", str(DEFAULT_BREACH_SWEEP_INTERVAL))
        ),
        mfa_wait=_millis("MFA_WAIT_MS", DEFAULT_MFA_WAIT),
        debounce_window=_millis("DEBOUNCE_MS", DEFAULT_DEBOUNCE_WINDOW),
        outcome_initial_delay=_millis("OUTCOME_INITIAL_DELAY_MS", DEFAULT_OUTCOME_INITIAL_DELAY),
        outcome_poll_interval=_millis("OUTCOME_POLL_INTERVAL_MS", DEFAULT_OUTCOME_POLL_INTERVAL),
        outcome_ceiling=_millis("OUTCOME_CEILING_MS", DEFAULT_OUTCOME_CEILING),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        data_dir=Path(os.getenv("DATA_DIR", "./data")),
        config_dir=config_dir,
        heuristics=load_heuristics(config_dir),
    )


def validate_settings(settings: Settings) -> list[str]:
    """Validate settings and return list of error messages."""
    errors: list[str] = []
    if not 0 < settings.port < 65536:
        errors.append(f"LOGINWATCH_PORT out of range: {settings.port}")
    if not settings.register_path.startswith("/"):
        errors.append("REGISTER_PATH must start with '/'")
    if not settings.breach_api_url.startswith("https://"):
        errors.append("BREACH_API_URL must use https")

    timings = {
        "MFA_WAIT_MS": settings.mfa_wait,
        "DEBOUNCE_MS": settings.debounce_window,
        "OUTCOME_INITIAL_DELAY_MS": settings.outcome_initial_delay,
        "OUTCOME_POLL_INTERVAL_MS": settings.outcome_poll_interval,
        "OUTCOME_CEILING_MS": settings.outcome_ceiling,
    }
    for name, value in timings.items():
        if value <= 0:
            errors.append(f"{name} must be positive")
    if settings.outcome_ceiling < settings.outcome_initial_delay:
        errors.append("OUTCOME_CEILING_MS must not be shorter than OUTCOME_INITIAL_DELAY_MS")
    if settings.breach_cache_ttl <= 0:
        errors.append("BREACH_CACHE_TTL_SECONDS must be positive")

    return errors
