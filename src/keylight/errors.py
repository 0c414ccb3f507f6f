from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .core.models import DiscoveredInstance


class KeyLightError(Exception):
    """Base class for every error raised by this package."""


class InvalidAddress(KeyLightError, ValueError):
    """Host or port supplied directly is malformed."""


class DeviceNotFound(KeyLightError):
    """Discovery finished without a device of the requested name."""


class AmbiguousName(KeyLightError):
    """More than one discovered device carries the requested name."""

    def __init__(self, name: str, matches: Sequence["DiscoveredInstance"]) -> None:
        self.name = name
        self.matches = tuple(matches)
        hosts = ", ".join(f"{m.host}:{m.port}" for m in self.matches)
        super().__init__(f"{len(self.matches)} devices named {name!r} found ({hosts})")


class InvalidParameter(KeyLightError, ValueError):
    """A requested value is outside the valid range for its field."""

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class TransportPhase(str, Enum):
    CONNECT = "connect"
    SEND = "send"
    RECEIVE = "receive"
    PARSE = "parse"


class TransportError(KeyLightError):
    """HTTP level failure talking to a device.

    ``phase`` tells where the request failed. ``retryable`` is a hint only:
    nothing in this package retries on its own.
    """

    def __init__(
        self,
        message: str,
        phase: TransportPhase,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        self.phase = phase
        self.url = url
        self.status = status
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        if self.phase is TransportPhase.PARSE:
            return False
        if self.status is not None and 400 <= self.status < 500:
            return False
        return True

    def __str__(self) -> str:
        text = f"[{self.phase.value}] {self.args[0]}"
        if self.url:
            text += f" ({self.url})"
        return text
