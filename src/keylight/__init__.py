"""
Key Light session - asyncio client for Elgato Key Light style accessories.

Logging goes through loguru and is disabled by default; enable it with
``logger.enable("keylight")``.
"""

__version__ = "1.0.0"

from loguru import logger

from .config import config_path, load_settings
from .core.discovery import AddressResolver, ZeroconfDiscovery
from .core.models import (
    AccessoryInfo,
    CacheAbsent,
    CachePresent,
    DeviceAddress,
    DiscoveredInstance,
    LightCache,
    LightState,
)
from .core.service import KeyLightService
from .core.session import DeviceSession
from .core.settings_schema import Settings
from .errors import (
    AmbiguousName,
    DeviceNotFound,
    InvalidAddress,
    InvalidParameter,
    KeyLightError,
    TransportError,
    TransportPhase,
)

logger.disable("keylight")

__all__ = [
    "AccessoryInfo",
    "AddressResolver",
    "AmbiguousName",
    "CacheAbsent",
    "CachePresent",
    "DeviceAddress",
    "DeviceNotFound",
    "DeviceSession",
    "DiscoveredInstance",
    "InvalidAddress",
    "InvalidParameter",
    "KeyLightError",
    "KeyLightService",
    "LightCache",
    "LightState",
    "Settings",
    "TransportError",
    "TransportPhase",
    "ZeroconfDiscovery",
    "config_path",
    "load_settings",
]
