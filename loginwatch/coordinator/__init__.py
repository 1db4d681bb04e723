"""Coordinator: device config, hashing policy, collector and breach checks."""

from .breach import BreachCheckClient, BreachService
from .collector import CollectorClient
from .device_config import DeviceConfig, DeviceConfigStore
from .notifier import LogNotifier
from .server import CoordinatorServer
from .service import Coordinator
from .transport import is_allowed_endpoint

__all__ = [
    "BreachCheckClient",
    "BreachService",
    "CollectorClient",
    "Coordinator",
    "CoordinatorServer",
    "DeviceConfig",
    "DeviceConfigStore",
    "LogNotifier",
    "is_allowed_endpoint",
]
