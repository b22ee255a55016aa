"""Websocket gateway between downstream clients and the upstream AIS feed."""
from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from typing import Callable

import aiohttp
from fastapi import WebSocket, status
from starlette.websockets import WebSocketDisconnect, WebSocketState

from common.config import GatewayConfig
from gateway.exceptions import (
    GatewayError,
    PolicyViolationError,
    ProtocolViolationError,
    UpstreamFailureError,
)
from gateway.limits import ConnectionLimiter
from gateway.types import (
    ConnectionSession,
    RateWindow,
    SessionState,
    Subscription,
    UpstreamConnection,
    UpstreamConnector,
)
from gateway.validation import validate_subscription

logger = logging.getLogger(__name__)

AUTHENTICATED_MESSAGE = json.dumps({"type": "authenticated"})

# Close reasons are limited to 123 bytes by the websocket protocol
MAX_CLOSE_REASON_BYTES = 123


class AiohttpUpstreamConnector:
    """Opens upstream websockets on one shared aiohttp session."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        heartbeat_seconds: float | None = 30.0,
        connect_timeout_seconds: float = 15.0,
    ):
        self._session = session
        self._owns_session = session is None
        self._heartbeat_seconds = heartbeat_seconds
        self._timeout = aiohttp.ClientTimeout(total=None, connect=connect_timeout_seconds)

    async def __call__(self, url: str) -> UpstreamConnection:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return await self._session.ws_connect(url, heartbeat=self._heartbeat_seconds)

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


def _truncate_reason(reason: str) -> str:
    encoded = reason.encode("utf-8")
    if len(encoded) <= MAX_CLOSE_REASON_BYTES:
        return reason
    return encoded[:MAX_CLOSE_REASON_BYTES].decode("utf-8", errors="ignore")


class GatewayProxy:
    """
    Admits, authenticates and relays downstream websocket connections.

    Each accepted connection must send a valid subscription (optionally
    preceded by ``{"authToken": ...}``) before the subscription deadline.
    The gateway then opens one upstream connection for it, sends the
    sanitised subscription with the server's API key, and relays frames in
    both directions until either side closes.
    """

    def __init__(
        self,
        config: GatewayConfig,
        connector: UpstreamConnector,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._connector = connector
        self._clock = clock
        self._limiter = ConnectionLimiter(config.max_connections_per_ip)
        self._sessions: dict[str, tuple[ConnectionSession, WebSocket]] = {}
        self._accepting = True

    @property
    def limiter(self) -> ConnectionLimiter:
        return self._limiter

    async def handle(self, websocket: WebSocket):
        ip = websocket.client.host if websocket.client else "unknown"
        client_id = secrets.token_hex(4)

        await websocket.accept()
        logger.info("client %s connected from %s", client_id, ip)

        if not self._accepting:
            await self._close_downstream(websocket, status.WS_1001_GOING_AWAY, "Server shutting down")
            return

        if not self._limiter.try_acquire(ip):
            logger.warning("connection limit exceeded for IP %s", ip)
            await self._close_downstream(
                websocket, status.WS_1008_POLICY_VIOLATION, "Too many connections from your IP"
            )
            return

        session = ConnectionSession(
            client_id=client_id,
            ip=ip,
            rate=RateWindow(
                limit=self._config.max_messages_per_minute,
                window_seconds=self._config.rate_window_seconds,
            ),
            deadline=self._clock() + self._config.subscription_timeout_seconds,
        )
        self._sessions[client_id] = (session, websocket)

        try:
            subscription = await self._await_subscription(session, websocket)
            await self._open_upstream(session, subscription)
            await self._relay(session, websocket)
        except GatewayError as exc:
            await self._close_downstream(websocket, exc.code, exc.reason)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("client %s session failed", client_id)
            await self._close_downstream(websocket, status.WS_1011_INTERNAL_ERROR, "Internal error")
        finally:
            await self._teardown(session)
            logger.info("client %s disconnected", client_id)

    async def _receive(self, session: ConnectionSession, websocket: WebSocket, deadline: float | None = None) -> str | bytes:
        if deadline is None:
            frame = await self._receive_frame(websocket)
        else:
            remaining = deadline - self._clock()
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError
                frame = await asyncio.wait_for(self._receive_frame(websocket), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning("client %s did not subscribe in time", session.client_id)
                raise PolicyViolationError("Subscription timeout") from None

        if not session.rate.hit(self._clock()):
            logger.warning("message rate limit exceeded for client %s", session.client_id)
            raise PolicyViolationError("Rate limit exceeded")
        return frame

    @staticmethod
    async def _receive_frame(websocket: WebSocket) -> str | bytes:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE), message.get("reason"))
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    async def _await_subscription(self, session: ConnectionSession, websocket: WebSocket) -> Subscription:
        while True:
            frame = await self._receive(session, websocket, deadline=session.deadline)
            try:
                message = json.loads(frame)
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.error("client %s sent invalid JSON", session.client_id)
                raise ProtocolViolationError("Invalid JSON") from None

            if self._config.auth_required and not session.authenticated:
                self._authenticate(session, message)
                await websocket.send_text(AUTHENTICATED_MESSAGE)
                continue

            try:
                return validate_subscription(message, self._config)
            except ProtocolViolationError as exc:
                logger.error("client %s invalid subscription: %s", session.client_id, exc.reason)
                raise

    def _authenticate(self, session: ConnectionSession, message: object):
        token = message.get("authToken") if isinstance(message, dict) else None
        expected = self._config.auth_token or ""
        if not isinstance(token, str) or not secrets.compare_digest(token.encode(), expected.encode()):
            logger.warning("client %s failed authentication", session.client_id)
            raise PolicyViolationError("Authentication failed")
        session.authenticated = True
        session.state = SessionState.AWAITING_SUB
        logger.info("client %s authenticated", session.client_id)

    async def _open_upstream(self, session: ConnectionSession, subscription: Subscription):
        payload = json.dumps(subscription.to_upstream(self._config.upstream_api_key))
        logger.info("client %s subscription validated, connecting to upstream", session.client_id)
        try:
            upstream = await self._connector(self._config.upstream_url)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.error("client %s upstream connect failed: %s", session.client_id, exc)
            raise UpstreamFailureError("Upstream unavailable") from exc

        session.upstream = upstream
        if session.state == SessionState.CLOSED:
            # torn down by shutdown() while connecting
            await upstream.close()
            raise WebSocketDisconnect(status.WS_1001_GOING_AWAY)

        logger.info("client %s upstream connected", session.client_id)
        await upstream.send_str(payload)
        session.state = SessionState.RELAYING

    async def _relay(self, session: ConnectionSession, websocket: WebSocket):
        upstream = session.upstream
        tasks = [
            asyncio.create_task(self._pump_downstream(session, websocket, upstream)),
            asyncio.create_task(self._pump_upstream(session, websocket, upstream)),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def _pump_downstream(self, session: ConnectionSession, websocket: WebSocket, upstream: UpstreamConnection):
        while True:
            frame = await self._receive(session, websocket)
            if upstream.closed:
                continue
            try:
                if isinstance(frame, bytes):
                    await upstream.send_bytes(frame)
                else:
                    await upstream.send_str(frame)
            except (aiohttp.ClientError, ConnectionError) as exc:
                logger.error("client %s upstream send failed: %s", session.client_id, exc)
                raise UpstreamFailureError("Upstream error") from exc

    async def _pump_upstream(self, session: ConnectionSession, websocket: WebSocket, upstream: UpstreamConnection):
        async for msg in upstream:
            if msg.type == aiohttp.WSMsgType.TEXT:
                data = msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                # aisstream sends JSON as binary frames; downstream gets text
                data = msg.data.decode("utf-8", errors="replace")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.error("client %s upstream error: %s", session.client_id, msg.data)
                raise UpstreamFailureError("Upstream error")
            else:
                continue

            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.send_text(data)

        logger.info(
            "client %s upstream closed, code: %s",
            session.client_id,
            getattr(upstream, "close_code", None),
        )
        raise UpstreamFailureError("Upstream closed", code=status.WS_1000_NORMAL_CLOSURE)

    async def _close_downstream(self, websocket: WebSocket, code: int, reason: str):
        if (
            websocket.client_state != WebSocketState.CONNECTED
            or websocket.application_state != WebSocketState.CONNECTED
        ):
            return
        try:
            await websocket.close(code=code, reason=_truncate_reason(reason))
        except RuntimeError:
            # The peer went away between the state check and the close frame
            logger.debug("Downstream already closed")

    async def _teardown(self, session: ConnectionSession):
        self._sessions.pop(session.client_id, None)
        if not session.slot_released:
            self._limiter.release(session.ip)
            session.slot_released = True
        session.state = SessionState.CLOSED

        upstream = session.upstream
        session.upstream = None
        if upstream is not None and not upstream.closed:
            await upstream.close()

    async def shutdown(self):
        """Stop admitting connections and close every open session."""
        self._accepting = False
        sessions = list(self._sessions.values())
        for session, websocket in sessions:
            session.state = SessionState.CLOSED
            await self._close_downstream(websocket, status.WS_1001_GOING_AWAY, "Server shutting down")
            if session.upstream is not None and not session.upstream.closed:
                await session.upstream.close()
        if sessions:
            logger.info("Closed %d gateway session(s) on shutdown", len(sessions))

    def status(self) -> dict:
        sessions = [session for session, _ in self._sessions.values()]
        return {
            "active_connections": len(sessions),
            "connections_by_ip": self._limiter.snapshot(),
            "relaying": sum(1 for s in sessions if s.state == SessionState.RELAYING),
        }

    def list_sessions(self) -> list[dict]:
        return [session.to_dict() for session, _ in self._sessions.values()]
