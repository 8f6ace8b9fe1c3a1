"""Tests for the loopback callback server"""

import asyncio

import aiohttp
import pytest

from desktop_oauth.callback_server import CallbackServer
from desktop_oauth.exceptions import BindError, CallbackTimeoutError


async def fetch(url, params=None):
    async with aiohttp.ClientSession() as session:
        async with session.get(url, params=params) as response:
            return response.status, await response.text()


class TestCallbackServer:
    @pytest.mark.asyncio
    async def test_binds_loopback_ephemeral_port(self):
        async with CallbackServer() as server:
            assert server.is_running
            assert server.port > 0
            assert server.get_success_endpoint() == f"http://127.0.0.1:{server.port}/callback"
        assert not server.is_running

    @pytest.mark.asyncio
    async def test_receives_code_and_state(self):
        async with CallbackServer() as server:
            status, body = await fetch(server.get_success_endpoint(), {"code": "abc", "state": "xyz"})
            result = await server.wait_for_callback(1)

        assert status == 200
        assert "Authorization Received" in body
        assert result.code == "abc"
        assert result.state == "xyz"
        assert not result.is_error

    @pytest.mark.asyncio
    async def test_provider_error_is_delivered(self):
        async with CallbackServer() as server:
            status, body = await fetch(
                server.get_success_endpoint(),
                {"error": "access_denied", "error_description": "<b>denied</b>", "state": "xyz"},
            )
            result = await server.wait_for_callback(1)

        assert status == 400
        assert "Authorization Failed" in body
        assert "&lt;b&gt;denied&lt;/b&gt;" in body
        assert result.is_error
        assert result.error == "access_denied"
        assert result.error_description == "<b>denied</b>"

    @pytest.mark.asyncio
    async def test_request_without_code_keeps_waiting(self):
        async with CallbackServer() as server:
            status, _ = await fetch(server.get_success_endpoint(), {"state": "xyz"})
            assert status == 400

            status, _ = await fetch(server.get_success_endpoint(), {"code": "abc", "state": "xyz"})
            result = await server.wait_for_callback(1)

        assert status == 200
        assert result.code == "abc"

    @pytest.mark.asyncio
    async def test_only_first_redirect_counts(self):
        async with CallbackServer() as server:
            await fetch(server.get_success_endpoint(), {"code": "first", "state": "xyz"})
            status, _ = await fetch(server.get_success_endpoint(), {"code": "second", "state": "xyz"})
            result = await server.wait_for_callback(1)

        assert status == 409
        assert result.code == "first"

    @pytest.mark.asyncio
    async def test_other_paths_are_not_found(self):
        async with CallbackServer() as server:
            status, _ = await fetch(f"http://127.0.0.1:{server.port}/other", {"code": "abc"})
        assert status == 404

    @pytest.mark.asyncio
    async def test_wait_times_out(self):
        async with CallbackServer() as server:
            with pytest.raises(CallbackTimeoutError) as exc_info:
                await server.wait_for_callback(0.05)

        assert exc_info.value.kind == "timeout"

    @pytest.mark.asyncio
    async def test_port_is_released_after_stop(self):
        server = CallbackServer()
        await server.start()
        port = server.port
        await fetch(server.get_success_endpoint(), {"code": "abc", "state": "xyz"})
        await server.stop()

        again = CallbackServer(port=port)
        await again.start()
        try:
            assert again.port == port
        finally:
            await again.stop()

    @pytest.mark.asyncio
    async def test_bind_error_when_port_is_taken(self):
        async with CallbackServer() as server:
            with pytest.raises(BindError):
                await CallbackServer(port=server.port).start()

    @pytest.mark.asyncio
    async def test_stopped_server_cannot_restart(self):
        server = CallbackServer()
        await server.start()
        await server.stop()
        await server.stop()

        with pytest.raises(RuntimeError):
            await server.start()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_wait(self):
        server = CallbackServer()
        await server.start()
        waiter = asyncio.ensure_future(server.wait_for_callback(5))
        await asyncio.sleep(0)

        await server.stop()

        with pytest.raises(asyncio.CancelledError):
            await waiter

    def test_endpoint_requires_start(self):
        with pytest.raises(RuntimeError):
            CallbackServer().get_success_endpoint()
