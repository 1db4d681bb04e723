"""User-facing warnings raised by the coordinator."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class LogNotifier:
    """Delivers warnings through the log."""

    def __init__(self):
        self.sent: int = 0

    def warn(self, title: str, message: str) -> None:
        self.sent += 1
        logger.warning("%s %s", title, message)


def breach_warning(origin: str) -> tuple[str, str]:
    return (
        "Password Warning!",
        f"Your password for {origin} has been leaked on the internet!",
    )
