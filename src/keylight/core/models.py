from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Union

from ..errors import TransportError, TransportPhase
from ..utils.color_utils import elgato_to_kelvin


@dataclass(frozen=True)
class DeviceAddress:
    """Resolved network location of a Key Light."""
    host: str
    port: int = 9123

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"


@dataclass(frozen=True)
class DiscoveredInstance:
    """One device advertised over mDNS."""
    name: str
    host: str
    port: int


@dataclass(frozen=True)
class LightState:
    """State of a Key Light as last reported by the device."""
    on: bool
    brightness: int
    temperature: int  # 143-344 (Elgato units, ~7000K-2900K)

    @property
    def kelvin(self) -> int:
        return elgato_to_kelvin(self.temperature)

    def with_changes(self, **changes: Any) -> "LightState":
        return replace(self, **changes)


@dataclass(frozen=True)
class AccessoryInfo:
    """Static device information from the accessory-info endpoint."""
    product_name: str
    serial_number: str
    display_name: str
    firmware_version: str
    mac_address: Optional[str] = None


@dataclass(frozen=True)
class CacheAbsent:
    """No state has been received from the device yet."""


@dataclass(frozen=True)
class CachePresent:
    state: LightState


LightCache = Union[CacheAbsent, CachePresent]


def _parse_error(message: str) -> TransportError:
    return TransportError(message, TransportPhase.PARSE)


def _require(data: Dict[str, Any], key: str, kind: type) -> Any:
    if key not in data:
        raise _parse_error(f"missing field {key!r}")
    value = data[key]
    # bool is an int subclass; the device never sends booleans for numbers
    if isinstance(value, bool) or not isinstance(value, kind):
        raise _parse_error(f"field {key!r} has unexpected value {value!r}")
    return value


def decode_status(payload: Any) -> LightState:
    """Decode a ``/elgato/lights`` body, reading the first light.

    Raises TransportError (parse phase) on any missing or mistyped field.
    """
    if not isinstance(payload, dict):
        raise _parse_error("light status is not a JSON object")
    lights = payload.get("lights")
    if not isinstance(lights, list) or not lights:
        raise _parse_error("light status has no lights")
    light = lights[0]
    if not isinstance(light, dict):
        raise _parse_error("light entry is not a JSON object")

    on = light.get("on")
    if isinstance(on, bool):
        power = on
    elif on in (0, 1) and isinstance(on, int):
        power = bool(on)
    else:
        raise _parse_error(f"field 'on' has unexpected value {on!r}")

    return LightState(
        on=power,
        brightness=_require(light, "brightness", int),
        temperature=_require(light, "temperature", int),
    )


def encode_status(state: LightState) -> Dict[str, Any]:
    """Full state object as the device expects it on every update."""
    return {
        "numberOfLights": 1,
        "lights": [
            {
                "on": 1 if state.on else 0,
                "brightness": state.brightness,
                "temperature": state.temperature,
            }
        ],
    }


def decode_accessory_info(payload: Any) -> AccessoryInfo:
    if not isinstance(payload, dict):
        raise _parse_error("accessory info is not a JSON object")
    mac = payload.get("macAddress")
    if mac is not None and not isinstance(mac, str):
        raise _parse_error(f"field 'macAddress' has unexpected value {mac!r}")
    return AccessoryInfo(
        product_name=_require(payload, "productName", str),
        serial_number=_require(payload, "serialNumber", str),
        display_name=_require(payload, "displayName", str),
        firmware_version=_require(payload, "firmwareVersion", str),
        mac_address=mac.upper().replace(":", "").replace("-", "") if mac else None,
    )
