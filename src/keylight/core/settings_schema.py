from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Any


@dataclass(frozen=True)
class DiscoverySettings:
    service_type: str = "_elg._tcp.local."
    timeout_s: float = 5.0
    resolve_grace_s: float = 1.0
    info_timeout_ms: int = 1000


@dataclass(frozen=True)
class HttpSettings:
    timeout_s: float = 2.0
    default_port: int = 9123


@dataclass(frozen=True)
class DeviceLimits:
    temperature_min: int = 143  # ~7000K
    temperature_max: int = 344  # ~2900K
    kelvin_min: int = 2900
    kelvin_max: int = 7000


@dataclass(frozen=True)
class PollingSettings:
    interval_s: float = 5.0


@dataclass(frozen=True)
class Settings:
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    limits: DeviceLimits = field(default_factory=DeviceLimits)
    polling: PollingSettings = field(default_factory=PollingSettings)


def defaults_dict() -> Dict[str, Any]:
    d = DiscoverySettings()
    h = HttpSettings()
    lim = DeviceLimits()
    p = PollingSettings()
    return {
        # Discovery
        "discovery.service_type": d.service_type,
        "discovery.timeout_s": d.timeout_s,
        "discovery.resolve_grace_s": d.resolve_grace_s,
        "discovery.info_timeout_ms": d.info_timeout_ms,
        # HTTP
        "http.timeout_s": h.timeout_s,
        "http.default_port": h.default_port,
        # Device limits
        "limits.temperature_min": lim.temperature_min,
        "limits.temperature_max": lim.temperature_max,
        "limits.kelvin_min": lim.kelvin_min,
        "limits.kelvin_max": lim.kelvin_max,
        # Polling
        "polling.interval_s": p.interval_s,
    }


def settings_from_dict(values: Dict[str, Any]) -> Settings:
    """Build Settings from dotted keys; keys not given keep their defaults."""
    merged = defaults_dict()
    merged.update(values)
    return Settings(
        discovery=DiscoverySettings(
            service_type=merged["discovery.service_type"],
            timeout_s=merged["discovery.timeout_s"],
            resolve_grace_s=merged["discovery.resolve_grace_s"],
            info_timeout_ms=merged["discovery.info_timeout_ms"],
        ),
        http=HttpSettings(
            timeout_s=merged["http.timeout_s"],
            default_port=merged["http.default_port"],
        ),
        limits=DeviceLimits(
            temperature_min=merged["limits.temperature_min"],
            temperature_max=merged["limits.temperature_max"],
            kelvin_min=merged["limits.kelvin_min"],
            kelvin_max=merged["limits.kelvin_max"],
        ),
        polling=PollingSettings(interval_s=merged["polling.interval_s"]),
    )
