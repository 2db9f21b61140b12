import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from pump_token_tracker.dexscreener import (
    AsyncRateLimiter,
    ProviderError,
    RetryableError,
    request_json,
)


def _app() -> web.Application:
    async def ok(request):
        return web.json_response({"pairs": [], "echo": request.query.get("address")})

    async def echo_post(request):
        return web.json_response(await request.json())

    async def throttled(request):
        return web.Response(status=429, text="slow down")

    async def broken(request):
        return web.Response(status=502, text="bad gateway")

    async def unauthorized(request):
        return web.Response(status=401, text="bad key")

    async def not_json(request):
        return web.Response(text="<html>oops</html>", content_type="text/html")

    app = web.Application()
    app.router.add_get("/ok", ok)
    app.router.add_post("/rpc", echo_post)
    app.router.add_get("/429", throttled)
    app.router.add_get("/502", broken)
    app.router.add_get("/401", unauthorized)
    app.router.add_get("/html", not_json)
    return app


@pytest_asyncio.fixture
async def server():
    srv = test_utils.TestServer(_app())
    await srv.start_server()
    yield srv
    await srv.close()


async def _call(server, path, method="GET", **kwargs):
    async with aiohttp.ClientSession() as session:
        limiter = AsyncRateLimiter(100, 4)
        return await request_json(session, limiter, method, str(server.make_url(path)), **kwargs)


async def test_success_returns_json(server):
    data = await _call(server, "/ok", params={"address": "abc"})
    assert data == {"pairs": [], "echo": "abc"}


async def test_post_sends_payload(server):
    payload = {"jsonrpc": "2.0", "id": 1, "method": "getHealth"}
    assert await _call(server, "/rpc", method="POST", payload=payload) == payload


async def test_throttling_and_server_errors_are_retryable(server):
    with pytest.raises(RetryableError):
        await _call(server, "/429")
    with pytest.raises(RetryableError):
        await _call(server, "/502")


async def test_other_statuses_are_permanent(server):
    with pytest.raises(ProviderError) as excinfo:
        await _call(server, "/401")
    assert not isinstance(excinfo.value, RetryableError)


async def test_invalid_json_is_permanent(server):
    with pytest.raises(ProviderError) as excinfo:
        await _call(server, "/html")
    assert not isinstance(excinfo.value, RetryableError)


async def test_connection_failure_is_retryable():
    async with aiohttp.ClientSession() as session:
        with pytest.raises(RetryableError):
            await request_json(session, AsyncRateLimiter(100, 4), "GET", "http://127.0.0.1:1/")
