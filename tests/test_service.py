import asyncio
import socket
from unittest.mock import MagicMock

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from keylight.core.models import DeviceAddress, LightState
from keylight.core.service import KeyLightService
from keylight.core.session import DeviceSession
from keylight.errors import TransportError, TransportPhase


def device_app(state, requests):
    """Minimal Key Light HTTP API backed by ``state``."""

    async def get_lights(request):
        requests.append(("GET", None))
        return web.json_response({"numberOfLights": 1, "lights": [dict(state)]})

    async def put_lights(request):
        body = await request.json()
        requests.append(("PUT", body))
        state.update(body["lights"][0])
        return web.json_response({"numberOfLights": 1, "lights": [dict(state)]})

    app = web.Application()
    app.router.add_get("/elgato/lights", get_lights)
    app.router.add_put("/elgato/lights", put_lights)
    return app


async def start(app):
    server = TestServer(app)
    await server.start_server()
    return server


def unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestKeyLightService:
    @pytest.mark.asyncio
    async def test_fetch_and_set(self):
        state = {"on": 1, "brightness": 20, "temperature": 213}
        requests = []
        server = await start(device_app(state, requests))
        try:
            service = KeyLightService()
            address = DeviceAddress("127.0.0.1", server.port)

            fetched = await service.fetch_light_state(address)
            echoed = await service.set_light_state(
                address,
                {"numberOfLights": 1, "lights": [{"on": 0, "brightness": 20, "temperature": 213}]},
            )
        finally:
            await server.close()

        assert fetched["lights"][0]["brightness"] == 20
        assert echoed["lights"][0]["on"] == 0
        assert [method for method, _ in requests] == ["GET", "PUT"]

    @pytest.mark.asyncio
    async def test_shared_client_session(self):
        requests = []
        server = await start(device_app({"on": 0, "brightness": 3, "temperature": 143}, requests))
        try:
            async with aiohttp.ClientSession() as client:
                service = KeyLightService(session=client)
                address = DeviceAddress("127.0.0.1", server.port)
                await service.fetch_light_state(address)
                await service.fetch_light_state(address)
                assert not client.closed
        finally:
            await server.close()

        assert len(requests) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, retryable", [(500, True), (404, False)])
    async def test_error_status(self, status, retryable):
        async def handler(request):
            return web.Response(status=status)

        app = web.Application()
        app.router.add_get("/elgato/lights", handler)
        server = await start(app)
        try:
            with pytest.raises(TransportError) as excinfo:
                await KeyLightService().fetch_light_state(DeviceAddress("127.0.0.1", server.port))
        finally:
            await server.close()

        assert excinfo.value.phase is TransportPhase.RECEIVE
        assert excinfo.value.status == status
        assert excinfo.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async def handler(request):
            return web.Response(text="<html>busy</html>")

        app = web.Application()
        app.router.add_get("/elgato/lights", handler)
        server = await start(app)
        try:
            with pytest.raises(TransportError) as excinfo:
                await KeyLightService().fetch_light_state(DeviceAddress("127.0.0.1", server.port))
        finally:
            await server.close()

        assert excinfo.value.phase is TransportPhase.PARSE

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response({})

        app = web.Application()
        app.router.add_get("/elgato/lights", handler)
        server = await start(app)
        try:
            with pytest.raises(TransportError) as excinfo:
                await KeyLightService(timeout_seconds=0.1).fetch_light_state(
                    DeviceAddress("127.0.0.1", server.port)
                )
        finally:
            await server.close()

        assert excinfo.value.phase is TransportPhase.RECEIVE
        assert excinfo.value.retryable is True

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        with pytest.raises(TransportError) as excinfo:
            await KeyLightService().fetch_light_state(DeviceAddress("127.0.0.1", unused_port()))

        assert excinfo.value.phase is TransportPhase.CONNECT
        assert isinstance(excinfo.value.__cause__, aiohttp.ClientConnectorError)

    @pytest.mark.asyncio
    async def test_connect_timeout_is_a_connect_failure(self):
        client = MagicMock()
        client.request.side_effect = aiohttp.ConnectionTimeoutError()

        with pytest.raises(TransportError) as excinfo:
            await KeyLightService(session=client).fetch_light_state(DeviceAddress("192.0.2.5", 9123))

        assert excinfo.value.phase is TransportPhase.CONNECT
        assert excinfo.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_applies_to_shared_client_session(self):
        async def handler(request):
            await asyncio.sleep(1)
            return web.json_response({})

        app = web.Application()
        app.router.add_get("/elgato/lights", handler)
        server = await start(app)
        try:
            async with aiohttp.ClientSession() as client:
                service = KeyLightService(timeout_seconds=0.1, session=client)
                with pytest.raises(TransportError) as excinfo:
                    await service.fetch_light_state(DeviceAddress("127.0.0.1", server.port))
        finally:
            await server.close()

        assert excinfo.value.phase is TransportPhase.RECEIVE


class TestSessionAgainstHttpDevice:
    @pytest.mark.asyncio
    async def test_set_brightness_round_trip(self):
        state = {"on": 1, "brightness": 80, "temperature": 230}
        requests = []
        server = await start(device_app(state, requests))
        try:
            session = DeviceSession.new_from_address("127.0.0.1", server.port)
            result = await session.set_brightness(30)
        finally:
            await server.close()

        assert result == LightState(on=True, brightness=30, temperature=230)
        assert session.current_state() == result
        assert requests[0] == ("GET", None)
        assert requests[1][1]["lights"][0] == {"on": 1, "brightness": 30, "temperature": 230}
