"""
Reconnecting websocket client for the AIS gateway.

Handles the authenticate -> subscribe handshake on every (re)connect and
backs off exponentially between failed attempts.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

import aiohttp

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], Awaitable[None] | None]

AUTHENTICATED_MESSAGE_TYPE = "authenticated"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"


class ResilientStreamClient:
    def __init__(
        self,
        url: str,
        subscription: dict[str, Any],
        on_message: MessageHandler,
        auth_token: str | None = None,
        initial_backoff_seconds: float = 2.0,
        max_backoff_seconds: float = 60.0,
        session: aiohttp.ClientSession | None = None,
        heartbeat_seconds: float | None = 30.0,
    ):
        self._url = url
        self._subscription = subscription
        self._on_message = on_message
        self._auth_token = auth_token
        self._initial_backoff_seconds = initial_backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._backoff_seconds = initial_backoff_seconds
        self._session = session
        self._owns_session = session is None
        self._heartbeat_seconds = heartbeat_seconds

        self._state = ConnectionState.DISCONNECTED
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._stopping = False
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    @property
    def backoff_seconds(self) -> float:
        """Delay that will be used before the next reconnect attempt."""
        return self._backoff_seconds

    async def run(self):
        """Connect and keep reconnecting until ``stop()`` is called."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            while not self._stopping:
                await self._connect_once()
                if self._stopping:
                    break
                await self._wait_before_reconnect()
        finally:
            self._state = ConnectionState.DISCONNECTED
            if self._owns_session and self._session is not None:
                await self._session.close()
                self._session = None

    async def stop(self):
        if self._stopping:
            return
        self._stopping = True
        self._stop_event.set()
        ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close()

    async def _connect_once(self):
        self._state = ConnectionState.CONNECTING
        logger.info("Connecting to %s...", self._url)
        try:
            async with self._session.ws_connect(self._url, heartbeat=self._heartbeat_seconds) as ws:
                if self._stopping:
                    # stop() ran while the handshake was in flight
                    await ws.close()
                    return

                self._ws = ws
                self._backoff_seconds = self._initial_backoff_seconds
                logger.info("Connected to %s", self._url)
                await self._on_open(ws)

                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        await self._handle_frame(ws, msg.data)
                    elif msg.type == aiohttp.WSMsgType.BINARY:
                        await self._handle_frame(ws, msg.data.decode("utf-8", errors="replace"))
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        logger.error("Websocket error: %s", ws.exception())
                        break

                logger.info("Websocket closed: %s", ws.close_code)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.error("Connection to %s failed: %s", self._url, exc)
        finally:
            self._ws = None
            self._state = ConnectionState.DISCONNECTED

    async def _on_open(self, ws: aiohttp.ClientWebSocketResponse):
        if self._auth_token:
            self._state = ConnectionState.AUTHENTICATING
            await ws.send_str(json.dumps({"authToken": self._auth_token}))
            return
        await self._subscribe(ws)

    async def _subscribe(self, ws: aiohttp.ClientWebSocketResponse):
        if ws.closed:
            return
        await ws.send_str(json.dumps(self._subscription))
        self._state = ConnectionState.CONNECTED
        logger.info("Subscribed to AIS data")

    async def _handle_frame(self, ws: aiohttp.ClientWebSocketResponse, data: str):
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Ignoring unparseable frame")
            return
        if not isinstance(payload, dict):
            return

        if payload.get("type") == AUTHENTICATED_MESSAGE_TYPE:
            logger.info("Authenticated successfully")
            await self._subscribe(ws)
            return

        try:
            result = self._on_message(payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Message handler failed")

    async def _wait_before_reconnect(self):
        delay = self._backoff_seconds
        logger.info("Reconnecting in %.1fs...", delay)
        self._backoff_seconds = min(delay * 2, self._max_backoff_seconds)
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
