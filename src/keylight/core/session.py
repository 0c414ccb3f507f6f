from __future__ import annotations

import asyncio
from typing import Callable, Optional

from loguru import logger

from ..errors import InvalidParameter, TransportError
from ..utils.color_utils import kelvin_to_elgato
from .discovery import AddressResolver, Discovery, ZeroconfDiscovery
from .models import (
    AccessoryInfo,
    CacheAbsent,
    CachePresent,
    DeviceAddress,
    LightCache,
    LightState,
    decode_accessory_info,
    decode_status,
    encode_status,
)
from .service import KeyLightService
from .settings_schema import Settings


def _require_int(field: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(field, value, "expected an integer")
    return value


class DeviceSession:
    """Live handle on one Key Light.

    The cached state is only ever written from a device response. It starts
    absent and, once present, is replaced on every successful refresh or
    mutation and never cleared; failures leave it as it was.

    Each operation holds a per-session lock across "read cache, build request,
    await response, write cache", so the cache after an operation reflects
    that operation's response. Separate sessions share nothing but the
    transport.

    There is no multi-field update. Changing several fields means several
    calls; if one fails, the earlier ones have taken effect and the cache
    matches what the device reported for them.
    """

    def __init__(
        self,
        address: DeviceAddress,
        transport: Optional[KeyLightService] = None,
        settings: Optional[Settings] = None,
        name: Optional[str] = None,
    ) -> None:
        self._settings = settings or Settings()
        self._address = address
        self._transport = transport or KeyLightService(self._settings.http.timeout_s)
        self._name = name
        self._cache: LightCache = CacheAbsent()
        self._lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None

    # --- construction ---
    @classmethod
    def new_from_address(
        cls,
        host: str,
        port: Optional[int] = None,
        transport: Optional[KeyLightService] = None,
        settings: Optional[Settings] = None,
    ) -> "DeviceSession":
        settings = settings or Settings()
        port = settings.http.default_port if port is None else port
        address = AddressResolver().resolve_by_address(host, port)
        return cls(address, transport, settings)

    @classmethod
    async def new_from_name(
        cls,
        display_name: str,
        timeout: Optional[float] = None,
        discovery: Optional[Discovery] = None,
        transport: Optional[KeyLightService] = None,
        settings: Optional[Settings] = None,
    ) -> "DeviceSession":
        settings = settings or Settings()
        resolver = AddressResolver(
            discovery or ZeroconfDiscovery(settings.discovery.info_timeout_ms),
            service_type=settings.discovery.service_type,
            default_timeout=settings.discovery.timeout_s,
            # Covers the resolve phase ZeroconfDiscovery runs after browsing.
            grace=settings.discovery.info_timeout_ms / 1000 + settings.discovery.resolve_grace_s,
        )
        address = await resolver.resolve_by_name(display_name, timeout)
        return cls(address, transport, settings, name=display_name)

    # --- accessors ---
    @property
    def address(self) -> DeviceAddress:
        return self._address

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def cache(self) -> LightCache:
        return self._cache

    def current_state(self) -> Optional[LightState]:
        """Cached state, without a network call. None until first success."""
        if isinstance(self._cache, CachePresent):
            return self._cache.state
        return None

    # --- queries ---
    async def refresh(self) -> LightState:
        async with self._lock:
            return await self._refresh_locked()

    async def accessory_info(self) -> AccessoryInfo:
        data = await self._transport.fetch_accessory_info(self._address)
        return decode_accessory_info(data)

    # --- mutations ---
    async def set_power(self, on: bool) -> LightState:
        if not isinstance(on, bool):
            raise InvalidParameter("on", on, "expected a boolean")
        return await self._update(lambda state: state.with_changes(on=on))

    async def set_brightness(self, percent: int) -> LightState:
        percent = _require_int("brightness", percent)
        if not 0 <= percent <= 100:
            raise InvalidParameter("brightness", percent, "must be between 0 and 100")
        return await self._update(lambda state: state.with_changes(brightness=percent))

    async def set_relative_brightness(self, delta: float) -> LightState:
        """Shift brightness by ``delta`` of full scale (-1.0 to 1.0).

        The resulting target is clamped to 0-100; the device's answer is what
        ends up in the cache.
        """
        if isinstance(delta, bool) or not isinstance(delta, (int, float)):
            raise InvalidParameter("brightness delta", delta, "expected a number")
        if not -1.0 <= delta <= 1.0:
            raise InvalidParameter("brightness delta", delta, "must be between -1.0 and 1.0")

        def shift(state: LightState) -> LightState:
            target = round(state.brightness + delta * 100)
            return state.with_changes(brightness=max(0, min(100, target)))

        return await self._update(shift)

    async def set_temperature(self, units: int) -> LightState:
        units = _require_int("temperature", units)
        limits = self._settings.limits
        if not limits.temperature_min <= units <= limits.temperature_max:
            raise InvalidParameter(
                "temperature",
                units,
                f"must be between {limits.temperature_min} and {limits.temperature_max}",
            )
        return await self._update(lambda state: state.with_changes(temperature=units))

    async def set_temperature_kelvin(self, kelvin: int) -> LightState:
        kelvin = _require_int("kelvin", kelvin)
        limits = self._settings.limits
        if not limits.kelvin_min <= kelvin <= limits.kelvin_max:
            raise InvalidParameter(
                "kelvin", kelvin, f"must be between {limits.kelvin_min} and {limits.kelvin_max}"
            )
        return await self.set_temperature(kelvin_to_elgato(kelvin))

    # --- polling ---
    def start_polling(self, interval: Optional[float] = None) -> None:
        """Refresh the cache in the background until stopped."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        interval = self._settings.polling.interval_s if interval is None else interval
        self._poll_task = asyncio.create_task(self._poll(interval))

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def close(self) -> None:
        await self.stop_polling()

    async def __aenter__(self) -> "DeviceSession":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # --- internals ---
    async def _poll(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except TransportError as e:
                # Polling has no caller to report to; the cache stays as it was.
                logger.warning(f"Polling {self._address.base_url} failed: {e}")
            except Exception:
                logger.exception(f"Polling {self._address.base_url} stopped")
                return

    async def _refresh_locked(self) -> LightState:
        data = await self._transport.fetch_light_state(self._address)
        return self._store(decode_status(data))

    async def _update(self, change: Callable[[LightState], LightState]) -> LightState:
        async with self._lock:
            if isinstance(self._cache, CachePresent):
                current = self._cache.state
            else:
                # Never send a request with unknown neighbour fields.
                current = await self._refresh_locked()
            requested = change(current)
            data = await self._transport.set_light_state(
                self._address, encode_status(requested)
            )
            return self._store(decode_status(data))

    def _store(self, state: LightState) -> LightState:
        self._cache = CachePresent(state)
        logger.debug(f"{self._address.base_url} state now {state}")
        return state

    def __repr__(self) -> str:
        label = f" {self._name!r}" if self._name else ""
        return f"<DeviceSession{label} {self._address.base_url}>"
