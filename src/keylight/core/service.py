from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import aiohttp
from loguru import logger

from ..errors import TransportError, TransportPhase
from .models import DeviceAddress

LIGHTS_PATH = "/elgato/lights"
ACCESSORY_INFO_PATH = "/elgato/accessory-info"


class KeyLightService:
    """HTTP service for interacting with Elgato Key Light devices.

    Holds no device state, so one instance can serve any number of sessions.
    Pass an ``aiohttp.ClientSession`` to reuse connections; otherwise a
    short-lived one is opened for every request.
    """

    def __init__(
        self,
        timeout_seconds: float = 2.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._session = session

    async def fetch_light_state(self, address: DeviceAddress) -> Dict[str, Any]:
        """Fetch current device state."""
        return await self._request("GET", address.base_url + LIGHTS_PATH)

    async def set_light_state(
        self, address: DeviceAddress, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Send a full state update; returns the state the device echoes back."""
        return await self._request("PUT", address.base_url + LIGHTS_PATH, payload)

    async def fetch_accessory_info(self, address: DeviceAddress) -> Dict[str, Any]:
        return await self._request("GET", address.base_url + ACCESSORY_INFO_PATH)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[aiohttp.ClientSession]:
        if self._session is not None:
            yield self._session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    async def _request(
        self, method: str, url: str, payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        logger.debug(f"{method} {url}")
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        try:
            async with self._client() as session:
                async with session.request(
                    method, url, json=payload, timeout=timeout
                ) as response:
                    if not 200 <= response.status < 300:
                        raise TransportError(
                            f"{method} failed with HTTP {response.status}",
                            TransportPhase.RECEIVE,
                            url=url,
                            status=response.status,
                        )
                    body = await response.read()
        except aiohttp.ConnectionTimeoutError as e:
            raise TransportError(
                f"connecting timed out after {self._timeout}s", TransportPhase.CONNECT, url=url
            ) from e
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"{method} timed out after {self._timeout}s", TransportPhase.RECEIVE, url=url
            ) from e
        except aiohttp.ClientConnectorError as e:
            raise TransportError(str(e), TransportPhase.CONNECT, url=url) from e
        except aiohttp.ClientPayloadError as e:
            raise TransportError(str(e), TransportPhase.RECEIVE, url=url) from e
        except aiohttp.ServerDisconnectedError as e:
            raise TransportError(str(e), TransportPhase.RECEIVE, url=url) from e
        except aiohttp.ClientError as e:
            raise TransportError(str(e), TransportPhase.SEND, url=url) from e

        try:
            data = json.loads(body)
        except ValueError as e:
            raise TransportError(
                "response body is not valid JSON", TransportPhase.PARSE, url=url
            ) from e
        if not isinstance(data, dict):
            raise TransportError(
                "response body is not a JSON object", TransportPhase.PARSE, url=url
            )
        return data
