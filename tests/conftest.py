import asyncio
import copy

import pytest
from loguru import logger

from keylight.core.models import DeviceAddress


class FakeTransport:
    """Stands in for KeyLightService and records every call."""

    def __init__(self, on=1, brightness=50, temperature=230):
        self.device = {"on": on, "brightness": brightness, "temperature": temperature}
        self.calls = []
        self.get_error = None
        self.put_error = None
        self.coerce = None
        self.delay = 0

    def _body(self):
        return {"numberOfLights": 1, "lights": [dict(self.device)]}

    async def fetch_light_state(self, address):
        self.calls.append(("GET", address, None))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.get_error is not None:
            raise self.get_error
        return self._body()

    async def set_light_state(self, address, payload):
        self.calls.append(("PUT", address, copy.deepcopy(payload)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.put_error is not None:
            raise self.put_error
        light = dict(payload["lights"][0])
        if self.coerce is not None:
            light = self.coerce(light)
        self.device.update(light)
        return self._body()

    async def fetch_accessory_info(self, address):
        self.calls.append(("GET", address, None))
        return {
            "productName": "Elgato Key Light",
            "serialNumber": "BW33J1A01234",
            "displayName": "Key Light Left",
            "firmwareVersion": "1.0.3",
            "macAddress": "3c:6a:9d:12:34:56",
        }

    def methods(self):
        return [method for method, _, _ in self.calls]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def address():
    return DeviceAddress("192.0.2.5", 9123)


@pytest.fixture
def status_body():
    return {
        "numberOfLights": 1,
        "lights": [{"on": 1, "brightness": 30, "temperature": 230}],
    }


@pytest.fixture
def log_records():
    """Collect keylight log records of ERROR and above."""
    records = []
    logger.enable("keylight")
    sink_id = logger.add(lambda message: records.append(message.record), level="ERROR")
    yield records
    logger.remove(sink_id)
    logger.disable("keylight")
