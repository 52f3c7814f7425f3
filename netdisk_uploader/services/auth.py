"""
OAuth authorization-code flow for the netdisk open platform.

Token exchanges are plain form POSTs; the optional callback listener catches
the browser redirect on localhost and exchanges the code it carries.
"""
from __future__ import annotations

import asyncio
import html
import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from ..config import AppConfig, OAuthConfig, TokenResponse, save_config
from ..errors import AuthError

logger = logging.getLogger(__name__)

AUTH_URL = "https://openapi.baidu.com/oauth/2.0/authorize"
TOKEN_URL = "https://openapi.baidu.com/oauth/2.0/token"
CALLBACK_PATH = "/callback"
CALLBACK_TIMEOUT = 300

_SUCCESS_PAGE = """<!DOCTYPE html>
<html><head><meta charset="UTF-8"><title>Authorized</title></head>
<body style="font-family: sans-serif; text-align: center; padding: 50px">
<h1>Authorization complete</h1>
<p>The access token was saved. You can close this page.</p>
</body></html>"""


def authorize_url(oauth: OAuthConfig) -> str:
    params = {
        "response_type": "code",
        "client_id": oauth.client_id,
        "redirect_uri": oauth.redirect_uri,
        "scope": oauth.scope,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


class OAuthClient:
    """Token endpoint client."""

    def __init__(
        self,
        oauth: OAuthConfig,
        token_url: str = TOKEN_URL,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._oauth = oauth
        self._token_url = token_url
        self._timeout = timeout
        self._transport = transport

    async def exchange_code(self, code: str) -> TokenResponse:
        """Trade an authorization code for tokens."""
        return await self._request({
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._oauth.client_id,
            "client_secret": self._oauth.client_secret,
            "redirect_uri": self._oauth.redirect_uri,
        })

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Trade a refresh token for a new access token."""
        return await self._request({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._oauth.client_id,
            "client_secret": self._oauth.client_secret,
        })

    async def _request(self, form: Dict[str, str]) -> TokenResponse:
        grant = form["grant_type"]
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._token_url, data=form)
        except httpx.HTTPError as e:
            raise AuthError(f"token request ({grant}) failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise AuthError(f"token response is not JSON (HTTP {response.status_code})") from e

        if data.get("error"):
            raise AuthError(f"{grant} failed: {data['error']} - {data.get('error_description', '')}")
        if response.status_code >= 400:
            raise AuthError(f"{grant} failed with HTTP {response.status_code}")
        token = TokenResponse.from_dict(data)
        if not token.access_token:
            raise AuthError(f"{grant} returned no access_token")
        return token


def _http_response(status: str, body: str) -> bytes:
    payload = body.encode("utf-8")
    head = (
        f"HTTP/1.1 {status}\r\n"
        "Content-Type: text/html; charset=utf-8\r\n"
        f"Content-Length: {len(payload)}\r\n"
        "Connection: close\r\n\r\n"
    )
    return head.encode("ascii") + payload


async def wait_for_callback(
    oauth: OAuthConfig,
    port: int = 8080,
    timeout: float = CALLBACK_TIMEOUT,
    host: str = "127.0.0.1",
    client: Optional[OAuthClient] = None,
) -> TokenResponse:
    """
    Serve the OAuth redirect once and exchange its code.

    The listener is always closed before returning, whether the exchange
    succeeded, failed or timed out.
    """
    client = client or OAuthClient(oauth)
    loop = asyncio.get_running_loop()
    outcome: asyncio.Future = loop.create_future()

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = (await reader.readline()).decode("latin-1").strip()
            # drain headers
            while (await reader.readline()) not in (b"\r\n", b"\n", b""):
                pass

            parts = request_line.split(" ")
            target = urlsplit(parts[1] if len(parts) > 1 else "/")
            if target.path != CALLBACK_PATH:
                writer.write(_http_response("404 Not Found", "not found"))
                return

            query = parse_qs(target.query)
            error = query.get("error", [""])[0]
            code = query.get("code", [""])[0]
            if error:
                description = query.get("error_description", [""])[0]
                exc = AuthError(f"authorization denied: {error} - {description}")
                writer.write(_http_response("400 Bad Request", html.escape(str(exc))))
            elif not code:
                exc = AuthError("callback carried no authorization code")
                writer.write(_http_response("400 Bad Request", html.escape(str(exc))))
            else:
                logger.info("Received authorization code, requesting access token...")
                try:
                    token = await client.exchange_code(code)
                except AuthError as e:
                    exc = e
                    writer.write(_http_response("502 Bad Gateway", html.escape(str(e))))
                else:
                    writer.write(_http_response("200 OK", _SUCCESS_PAGE))
                    if not outcome.done():
                        outcome.set_result(token)
                    return
            if not outcome.done():
                outcome.set_exception(exc)
        finally:
            await writer.drain()
            writer.close()

    server = await asyncio.start_server(handle, host, port)
    logger.info(f"Open this URL in a browser to authorize:\n{authorize_url(oauth)}")
    logger.info("Waiting for authorization callback...")
    try:
        return await asyncio.wait_for(outcome, timeout)
    except asyncio.TimeoutError as e:
        raise AuthError(f"authorization timed out after {timeout:.0f}s") from e
    finally:
        server.close()
        await server.wait_closed()


async def ensure_fresh_token(config: AppConfig, path: Optional[Path] = None, client: Optional[OAuthClient] = None) -> AppConfig:
    """Refresh and persist an expired access token; no-op when still valid."""
    if not config.is_expired():
        return config

    logger.warning("access_token expired, refreshing...")
    if not config.refresh_token or config.oauth is None:
        raise AuthError("access_token expired and cannot be refreshed; run --auth again")

    client = client or OAuthClient(config.oauth)
    token = await client.refresh(config.refresh_token)
    config.apply_token(token)
    save_config(config, path)
    logger.info("access_token refreshed")
    return config
