"""FastAPI websocket gateway for the aisstream.io vessel feed."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from common.config import GatewayConfig, configure_logging
from gateway import AiohttpUpstreamConnector, GatewayProxy
from gateway.types import UpstreamConnector

logger = logging.getLogger(__name__)


def create_app(
    config: GatewayConfig | None = None,
    connector: UpstreamConnector | None = None,
) -> FastAPI:
    gateway_config = config or GatewayConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        upstream_connector = connector or AiohttpUpstreamConnector()
        app.state.gateway = GatewayProxy(gateway_config, upstream_connector)
        logger.info("Gateway ready, relaying to %s", gateway_config.upstream_url)

        yield

        await app.state.gateway.shutdown()
        if isinstance(upstream_connector, AiohttpUpstreamConnector):
            await upstream_connector.close()

    app = FastAPI(
        title="Bridge Watch Gateway",
        description="Access-controlled relay for the live AIS vessel feed",
        version="0.1.0",
        lifespan=lifespan,
    )

    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.get("/health")
    @limiter.limit("30/minute")
    def health_check(request: Request):
        return {"status": "ok", **request.app.state.gateway.status()}

    @app.websocket("/")
    async def gateway_root(websocket: WebSocket):
        await websocket.app.state.gateway.handle(websocket)

    @app.websocket("/ws")
    async def gateway_ws(websocket: WebSocket):
        await websocket.app.state.gateway.handle(websocket)

    return app


def main():
    import uvicorn

    configure_logging()
    config = GatewayConfig()
    if not config.upstream_api_key:
        logger.error("AISSTREAM_API_KEY environment variable is required")
        raise SystemExit(1)

    if config.auth_required:
        logger.info("Authentication enabled")
    else:
        logger.warning("No authentication configured (set WS_AUTH_TOKEN for production)")

    logger.info("Websocket gateway listening on ws://%s:%s", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port, workers=1, loop="asyncio")


if __name__ == "__main__":
    main()
