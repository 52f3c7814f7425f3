"""Tests for the OAuth client and token refresh."""
import asyncio
import json
import socket
from datetime import datetime, timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from netdisk_uploader.config import AppConfig, OAuthConfig
from netdisk_uploader.errors import AuthError
from netdisk_uploader.services.auth import (
    OAuthClient,
    authorize_url,
    ensure_fresh_token,
    wait_for_callback,
)

OAUTH = OAuthConfig(client_id="app-key", client_secret="app-secret")


def _oauth_client(handler):
    return OAuthClient(OAUTH, token_url="https://oauth.test/token", transport=httpx.MockTransport(handler))


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_authorize_url_carries_client_and_scope():
    url = authorize_url(OAUTH)

    assert "client_id=app-key" in url
    assert "response_type=code" in url
    assert "scope=basic%2Cnetdisk" in url


@pytest.mark.asyncio
async def test_exchange_code_posts_form():
    seen = {}

    def handler(request):
        seen.update({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
        return httpx.Response(200, json={"access_token": "a1", "refresh_token": "r1", "expires_in": 100})

    token = await _oauth_client(handler).exchange_code("the-code")

    assert seen["grant_type"] == "authorization_code"
    assert seen["code"] == "the-code"
    assert seen["client_secret"] == "app-secret"
    assert token.access_token == "a1"
    assert token.expires_in == 100


@pytest.mark.asyncio
async def test_error_payload_raises_auth_error():
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "expired"})

    with pytest.raises(AuthError, match="invalid_grant"):
        await _oauth_client(handler).refresh("r-old")


@pytest.mark.asyncio
async def test_missing_access_token_raises():
    def handler(request):
        return httpx.Response(200, json={"scope": "basic"})

    with pytest.raises(AuthError, match="no access_token"):
        await _oauth_client(handler).refresh("r-old")


@pytest.mark.asyncio
async def test_ensure_fresh_token_is_noop_when_valid(tmp_path):
    config = AppConfig(access_token="a", expires_at=datetime.now() + timedelta(hours=1))

    assert await ensure_fresh_token(config, tmp_path / "config.json") is config
    assert not (tmp_path / "config.json").exists()


@pytest.mark.asyncio
async def test_ensure_fresh_token_refreshes_and_saves(tmp_path):
    def handler(request):
        return httpx.Response(200, json={"access_token": "a2", "refresh_token": "r2", "expires_in": 3600})

    path = tmp_path / "config.json"
    config = AppConfig(
        access_token="a1",
        refresh_token="r1",
        expires_at=datetime.now() - timedelta(seconds=1),
        oauth=OAUTH,
    )

    refreshed = await ensure_fresh_token(config, path, client=_oauth_client(handler))

    assert refreshed.access_token == "a2"
    assert not refreshed.is_expired()
    assert json.loads(path.read_text(encoding="utf-8"))["refresh_token"] == "r2"


@pytest.mark.asyncio
async def test_ensure_fresh_token_without_refresh_token(tmp_path):
    config = AppConfig(access_token="a1", expires_at=datetime.now() - timedelta(seconds=1))

    with pytest.raises(AuthError):
        await ensure_fresh_token(config, tmp_path / "config.json")


async def _get(port, target):
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(f"GET {target} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode())
    await writer.drain()
    response = await reader.read()
    writer.close()
    return response.decode()


@pytest.mark.asyncio
async def test_callback_listener_exchanges_code():
    def handler(request):
        return httpx.Response(200, json={"access_token": "cb-token"})

    port = _free_port()
    waiter = asyncio.create_task(wait_for_callback(OAUTH, port=port, timeout=5, client=_oauth_client(handler)))
    await asyncio.sleep(0.05)

    not_found = await _get(port, "/favicon.ico")
    page = await _get(port, "/callback?code=abc")
    token = await waiter

    assert "404" in not_found.splitlines()[0]
    assert "200 OK" in page.splitlines()[0]
    assert token.access_token == "cb-token"


@pytest.mark.asyncio
async def test_callback_listener_reports_denial():
    port = _free_port()
    waiter = asyncio.create_task(wait_for_callback(OAUTH, port=port, timeout=5))
    await asyncio.sleep(0.05)

    await _get(port, "/callback?error=access_denied")

    with pytest.raises(AuthError, match="access_denied"):
        await waiter


@pytest.mark.asyncio
async def test_callback_listener_times_out():
    with pytest.raises(AuthError, match="timed out"):
        await wait_for_callback(OAUTH, port=_free_port(), timeout=0.05)
