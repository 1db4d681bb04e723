"""Exception types raised by loginwatch."""


class LoginwatchError(Exception):
    """Base class for loginwatch errors."""


class TransportRefused(LoginwatchError):
    """The collector endpoint is neither loopback nor encrypted."""

    def __init__(self, endpoint: str):
        super().__init__(f"Refusing to send credentials to insecure endpoint: {endpoint}")
        self.endpoint = endpoint


class BreachCheckError(LoginwatchError):
    """The breach range service failed or answered with something unusable."""


class ConfigLockedError(LoginwatchError):
    """The device configuration is locked against edits."""
