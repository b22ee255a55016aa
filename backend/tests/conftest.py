"""Shared test fixtures for backend tests.

Gateway tests run the FastAPI app in-process with a fake upstream
connector, so no aisstream.io key or network access is needed.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from common.config import GatewayConfig, NotifierConfig
from tests.fakes import FakeUpstreamConnector, ManualClock


# ---------- Config fixtures ----------

@pytest.fixture()
def gateway_config_factory():
    def _make(**overrides) -> GatewayConfig:
        values = {
            "upstream_api_key": "server-api-key",
            "upstream_url": "wss://upstream.test/v0/stream",
            "auth_token": None,
            "max_connections_per_ip": 5,
            "max_messages_per_minute": 60,
            "subscription_timeout_seconds": 10,
        }
        values.update(overrides)
        return GatewayConfig(**values)

    return _make


@pytest.fixture()
def gateway_config(gateway_config_factory) -> GatewayConfig:
    return gateway_config_factory()


@pytest.fixture()
def notifier_config() -> NotifierConfig:
    return NotifierConfig(
        ntfy_server="https://ntfy.test",
        ntfy_topic="bridge-test",
        ntfy_token=None,
        ws_proxy_url="ws://gateway.test:3001",
        ws_auth_token=None,
        landmark_name="Blue Water Bridge",
        bridge_threshold_nm=0.5,
        notification_cooldown_seconds=1800,
        stale_vessel_timeout_seconds=900,
        cleanup_interval_seconds=300,
        initial_reconnect_delay_seconds=0.01,
        max_reconnect_delay_seconds=0.05,
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


# ---------- Gateway app fixtures ----------

@pytest.fixture()
def upstream_connector() -> FakeUpstreamConnector:
    return FakeUpstreamConnector()


@pytest.fixture()
def gateway_client_factory(gateway_config_factory):
    """Build a TestClient around a gateway app; the lifespan runs on enter."""
    from api import create_app

    clients: list[TestClient] = []

    def _make(connector: FakeUpstreamConnector | None = None, **config_overrides) -> TestClient:
        config = gateway_config_factory(**config_overrides)
        client = TestClient(create_app(config, connector=connector or FakeUpstreamConnector()))
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
