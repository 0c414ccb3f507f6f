from __future__ import annotations

import asyncio
import ipaddress
import re
from typing import List, Optional, Protocol, Sequence

from loguru import logger
from zeroconf import ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ..errors import AmbiguousName, DeviceNotFound, InvalidAddress
from .models import DeviceAddress, DiscoveredInstance

SERVICE_TYPE = "_elg._tcp.local."

_HOST_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


class Discovery(Protocol):
    async def find_instances(
        self, service_type: str, timeout: float
    ) -> Sequence[DiscoveredInstance]:
        ...


class ZeroconfDiscovery:
    """Discovers Key Light devices on the network using mDNS.

    Every call to :meth:`find_instances` owns its own browser for the
    duration of the call: start, collect for ``timeout`` seconds, resolve,
    stop. Nothing keeps listening afterwards.
    """

    def __init__(self, info_timeout_ms: int = 1000) -> None:
        self._info_timeout_ms = info_timeout_ms

    async def find_instances(
        self, service_type: str, timeout: float
    ) -> List[DiscoveredInstance]:
        names: List[str] = []

        def on_service_state_change(zeroconf, service_type, name, state_change):
            if state_change == ServiceStateChange.Added and name not in names:
                names.append(name)

        aiozc = AsyncZeroconf()
        browser = AsyncServiceBrowser(
            aiozc.zeroconf, service_type, handlers=[on_service_state_change]
        )
        try:
            await asyncio.sleep(timeout)
            found = await self._resolve_all(aiozc, service_type, names)
        finally:
            await browser.async_cancel()
            await aiozc.async_close()

        logger.debug(f"Discovered {len(found)} {service_type} instance(s)")
        return found

    async def _resolve_all(
        self, aiozc: AsyncZeroconf, service_type: str, names: List[str]
    ) -> List[DiscoveredInstance]:
        """Resolve every name, giving up on stragglers after the info timeout."""
        if not names:
            return []
        tasks = [
            asyncio.ensure_future(self._resolve(aiozc, service_type, name))
            for name in names
        ]
        try:
            await asyncio.wait(tasks, timeout=self._info_timeout_ms / 1000)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        found = []
        for name, task in zip(names, tasks):
            if task.cancelled():
                logger.debug(f"Gave up resolving {name}")
            elif task.exception() is not None:
                logger.debug(f"Resolving {name} failed: {task.exception()!r}")
            elif task.result() is not None:
                found.append(task.result())
        return found

    async def _resolve(
        self, aiozc: AsyncZeroconf, service_type: str, name: str
    ) -> Optional[DiscoveredInstance]:
        info = AsyncServiceInfo(service_type, name)
        if not await info.async_request(aiozc.zeroconf, self._info_timeout_ms):
            logger.debug(f"Could not resolve {name}")
            return None
        addresses = info.parsed_addresses()
        if not addresses or info.port is None:
            return None
        return DiscoveredInstance(
            name=name.replace(f".{service_type}", ""),
            host=addresses[0],
            port=info.port,
        )


def validate_address(host: object, port: object) -> DeviceAddress:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise InvalidAddress(f"Invalid port {port!r}")
    if not isinstance(host, str) or not host:
        raise InvalidAddress(f"Invalid host {host!r}")
    try:
        ipaddress.ip_address(host)
        return DeviceAddress(host, port)
    except ValueError:
        pass
    hostname = host[:-1] if host.endswith(".") else host
    if len(hostname) > 253 or not all(
        _HOST_LABEL.match(label) for label in hostname.split(".")
    ):
        raise InvalidAddress(f"Invalid host {host!r}")
    return DeviceAddress(host, port)


class AddressResolver:
    """Turns a direct address or a display name into a DeviceAddress."""

    def __init__(
        self,
        discovery: Optional[Discovery] = None,
        service_type: str = SERVICE_TYPE,
        default_timeout: float = 5.0,
        grace: float = 1.0,
    ) -> None:
        self._discovery = discovery
        self._service_type = service_type
        self._default_timeout = default_timeout
        self._grace = grace

    def resolve_by_address(self, host: str, port: int) -> DeviceAddress:
        return validate_address(host, port)

    async def resolve_by_name(
        self, display_name: str, timeout: Optional[float] = None
    ) -> DeviceAddress:
        """Find the single device advertising ``display_name``.

        The name match is exact and case-sensitive. Discovery runs once and is
        bounded by ``timeout`` plus ``grace``, which must leave room for
        resolving the instances seen while browsing.
        """
        if self._discovery is None:
            raise DeviceNotFound(f"No discovery available to look up {display_name!r}")
        timeout = self._default_timeout if timeout is None else timeout
        try:
            instances = await asyncio.wait_for(
                self._discovery.find_instances(self._service_type, timeout),
                timeout + self._grace,
            )
        except asyncio.TimeoutError as e:
            raise DeviceNotFound(
                f"Discovery of {display_name!r} did not finish within {timeout}s"
            ) from e

        matches = [i for i in instances if i.name == display_name]
        if not matches:
            raise DeviceNotFound(f"No device named {display_name!r} found")
        if len(matches) > 1:
            raise AmbiguousName(display_name, matches)

        match = matches[0]
        logger.debug(f"Resolved {display_name!r} to {match.host}:{match.port}")
        return validate_address(match.host, match.port)
