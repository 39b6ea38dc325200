"""
Twitch Helix API client.

Authentication uses the authorization code flow. The code from the config
file can only be exchanged for a token once, so the resulting token is
stored in the cache directory (token_<name>.json) and refreshed from there.
If the stored token is lost, the authorization code grant flow has to be
redone by hand.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from hydrabot.config.logging import get_logger
from hydrabot.config.schema import TwitchConfig
from hydrabot.config.store import read_token_cache, write_token_cache
from hydrabot.util.settings_message import StreamUser

logger = get_logger(__name__)

HELIX_URL = "https://api.twitch.tv/helix"
TOKEN_URL = "https://id.twitch.tv/oauth2/token"


class TwitchError(Exception):
    """Raised when Twitch rejects a request."""


class TwitchToken(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: list[str] = Field(default_factory=list)
    obtainment_timestamp: float = Field(default_factory=time.time)


class TwitchUser(BaseModel):
    id: str
    login: str
    display_name: str


class StreamStatus(BaseModel):
    """A live stream as reported by the Helix streams endpoint."""

    id: str
    user_id: str
    user_login: str
    user_name: str
    game_name: str = ""
    title: str = ""
    type: str = "live"
    viewers: int = Field(default=0, validation_alias="viewer_count")
    started_at: datetime
    thumbnail_url: str = ""
    tags: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class TwitchAuthProvider:
    """
    Supplies access tokens and keeps them fresh.

    Args:
        client_id: Twitch application client id
        client_secret: Twitch application client secret
        redirect_uri: Redirect URI registered for the application
        cache_path: Directory the token file is stored in
        name: Token name, used in the token file name
        http: HTTP client for requests to the token endpoint
        on_refresh: Called with the new token after each refresh
                    (default: store it in the token file)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        cache_path: Path,
        name: str,
        http: httpx.AsyncClient,
        on_refresh: Callable[[TwitchToken], Awaitable[Any]] | None = None,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._cache_path = cache_path
        self._name = name
        self._http = http
        self._on_refresh = on_refresh or self.store_token
        self._token: TwitchToken | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def token(self) -> TwitchToken | None:
        return self._token

    async def store_token(self, token: TwitchToken) -> None:
        await write_token_cache(self._cache_path, self._name, token.model_dump())

    async def initialize(self, auth_code: str) -> None:
        """Load the stored token, exchanging the authorization code if there is none yet."""
        stored = await read_token_cache(self._cache_path, self._name)
        if not stored.get("access_token"):
            logger.info(f"No stored Twitch token '{self._name}', exchanging authorization code")
            await self.store_token(await self.exchange_code(auth_code))
            stored = await read_token_cache(self._cache_path, self._name)
        self._token = TwitchToken.model_validate(stored)

    async def exchange_code(self, auth_code: str) -> TwitchToken:
        return await self._request_token({
            "grant_type": "authorization_code",
            "code": auth_code,
            "redirect_uri": self._redirect_uri,
        })

    async def refresh(self) -> TwitchToken:
        """Get a new access token using the refresh token and pass it to on_refresh."""
        async with self._refresh_lock:
            if self._token is None or not self._token.refresh_token:
                raise TwitchError("No refresh token available; redo the authorization code flow")
            token = await self._request_token({
                "grant_type": "refresh_token",
                "refresh_token": self._token.refresh_token,
            })
            self._token = token
            await self._on_refresh(token)
            logger.debug(f"Refreshed Twitch token '{self._name}'")
            return token

    async def _request_token(self, params: dict[str, str]) -> TwitchToken:
        resp = await self._http.post(
            TOKEN_URL,
            data={"client_id": self.client_id, "client_secret": self._client_secret, **params},
        )
        if resp.status_code != 200:
            raise TwitchError(f"Token request failed (HTTP {resp.status_code}): {resp.text}")
        return TwitchToken.model_validate(resp.json())

    def headers(self) -> dict[str, str]:
        if self._token is None:
            raise TwitchError("Twitch auth provider used before initialize()")
        return {
            "Client-Id": self.client_id,
            "Authorization": f"Bearer {self._token.access_token}",
        }


class TwitchClient:
    """
    Minimal Helix client: user lookup and stream status.

    Retries a request once after refreshing the token if Twitch answers 401.
    """

    def __init__(self, auth: TwitchAuthProvider, http: httpx.AsyncClient) -> None:
        self.auth = auth
        self._http = http
        self.user: TwitchUser | None = None

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{HELIX_URL}/{path}"
        resp = await self._http.get(url, params=params, headers=self.auth.headers())
        if resp.status_code == 401:
            await self.auth.refresh()
            resp = await self._http.get(url, params=params, headers=self.auth.headers())
        if resp.status_code != 200:
            raise TwitchError(f"GET {path} failed (HTTP {resp.status_code}): {resp.text}")
        return resp.json()

    async def get_user_by_name(self, name: str) -> TwitchUser | None:
        data = await self._get("users", {"login": name})
        items = data.get("data", [])
        return TwitchUser.model_validate(items[0]) if items else None

    async def get_stream_by_user_name(self, name: str) -> StreamStatus | None:
        """Return the user's current stream, or None if they're offline."""
        data = await self._get("streams", {"user_login": name})
        items = data.get("data", [])
        return StreamStatus.model_validate(items[0]) if items else None

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> TwitchClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False


async def create_twitch_client(config: TwitchConfig, cache_path: Path, name: str = "api") -> TwitchClient:
    """Build an authenticated client from the config file's Twitch section."""
    http = httpx.AsyncClient(timeout=15.0)
    app = config.app_credentials
    auth = TwitchAuthProvider(
        client_id=app.client_id,
        client_secret=app.client_secret,
        redirect_uri=app.redirect_uri,
        cache_path=cache_path,
        name=name,
        http=http,
    )
    try:
        await auth.initialize(config.api_credentials.auth_code)
        client = TwitchClient(auth, http)
        client.user = await client.get_user_by_name(config.api_credentials.user_name)
    except BaseException:
        await http.aclose()
        raise
    return client


async def get_current_streaming_status(
    users: Iterable[StreamUser], twitch: TwitchClient
) -> dict[str, StreamStatus | None]:
    """Return the stream status for each user, keyed by Discord username."""
    users = list(users)
    statuses = await asyncio.gather(
        *(twitch.get_stream_by_user_name(user.twitch_username) for user in users)
    )
    return {user.username: status for user, status in zip(users, statuses)}
