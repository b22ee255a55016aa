"""End-to-end tests for the websocket gateway through the FastAPI app."""
from __future__ import annotations

import json
from contextlib import ExitStack

import pytest
from starlette.websockets import WebSocketDisconnect

from tests.fakes import FakeUpstreamConnector, make_subscription

POSITION_FRAME = json.dumps({"MessageType": "PositionReport", "MetaData": {"MMSI": 1}})


def _expect_close(ws) -> WebSocketDisconnect:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        ws.receive_text()
    return exc_info.value


# ---------- Admission ----------

class TestConnectionCap:
    def test_sixth_connection_from_same_ip_is_rejected(self, gateway_client_factory):
        client = gateway_client_factory()

        with ExitStack() as stack:
            for _ in range(5):
                stack.enter_context(client.websocket_connect("/"))

            with client.websocket_connect("/") as sixth:
                closed = _expect_close(sixth)

            assert closed.code == 1008
            assert closed.reason == "Too many connections from your IP"
            assert client.app.state.gateway.limiter.count("testclient") == 5

    def test_timed_out_connection_frees_its_slot(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME])
        client = gateway_client_factory(
            connector, max_connections_per_ip=1, subscription_timeout_seconds=0.2
        )

        with client.websocket_connect("/") as idle:
            closed = _expect_close(idle)
        assert closed.code == 1008
        assert closed.reason == "Subscription timeout"

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            assert ws.receive_text() == POSITION_FRAME

    def test_ws_path_is_also_served(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME])
        client = gateway_client_factory(connector)

        with client.websocket_connect("/ws") as ws:
            ws.send_text(json.dumps(make_subscription()))
            assert ws.receive_text() == POSITION_FRAME


# ---------- Authentication ----------

class TestAuthentication:
    def test_wrong_token_closes_with_policy_violation(self, gateway_client_factory):
        connector = FakeUpstreamConnector()
        client = gateway_client_factory(connector, auth_token="secret")

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps({"authToken": "wrong"}))
            closed = _expect_close(ws)

        assert closed.code == 1008
        assert closed.reason == "Authentication failed"
        assert connector.urls == []

    def test_subscription_before_auth_is_rejected(self, gateway_client_factory):
        client = gateway_client_factory(auth_token="secret")

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            closed = _expect_close(ws)

        assert closed.code == 1008
        assert closed.reason == "Authentication failed"

    def test_correct_token_then_subscription_relays(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME])
        client = gateway_client_factory(connector, auth_token="secret")

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps({"authToken": "secret"}))
            assert ws.receive_json() == {"type": "authenticated"}

            ws.send_text(json.dumps(make_subscription()))
            assert ws.receive_text() == POSITION_FRAME

        assert connector.urls == ["wss://upstream.test/v0/stream"]

    def test_no_auth_needed_when_token_unset(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME])
        client = gateway_client_factory(connector)

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            assert ws.receive_text() == POSITION_FRAME


# ---------- Subscription handling ----------

class TestSubscription:
    def test_invalid_json_closes_with_1007(self, gateway_client_factory):
        client = gateway_client_factory()

        with client.websocket_connect("/") as ws:
            ws.send_text("{not json")
            closed = _expect_close(ws)

        assert closed.code == 1007
        assert closed.reason == "Invalid JSON"

    def test_invalid_subscription_closes_with_reason(self, gateway_client_factory):
        connector = FakeUpstreamConnector()
        client = gateway_client_factory(connector)

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps({"FilterMessageTypes": ["PositionReport"]}))
            closed = _expect_close(ws)

        assert closed.code == 1007
        assert closed.reason == "BoundingBoxes array is required"
        assert connector.urls == []

    def test_oversized_box_is_rejected(self, gateway_client_factory):
        client = gateway_client_factory()
        subscription = make_subscription(BoundingBoxes=[[[0, 0], [20, 20]]])

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(subscription))
            closed = _expect_close(ws)

        assert closed.code == 1007
        assert closed.reason == "Bounding box area too large (max 100 sq degrees)"

    def test_upstream_receives_whitelisted_fields_and_server_key(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME])
        client = gateway_client_factory(connector)
        subscription = make_subscription(APIKey="client-key", Extra="dropped")

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(subscription))
            ws.receive_text()

        sent = connector.connections[0].sent_json()[0]
        assert sent == {
            "APIKey": "server-api-key",
            "BoundingBoxes": [[[42.90, -82.55], [43.10, -82.30]]],
            "FilterMessageTypes": ["PositionReport", "ShipStaticData"],
        }

    def test_upstream_unavailable_closes_with_1011(self, gateway_client_factory):
        client = gateway_client_factory(FakeUpstreamConnector(fail=True))

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            closed = _expect_close(ws)

        assert closed.code == 1011
        assert closed.reason == "Upstream unavailable"


# ---------- Relay ----------

class TestRelay:
    def test_client_frames_are_forwarded_upstream(self, gateway_client_factory):
        connector = FakeUpstreamConnector()
        client = gateway_client_factory(connector)

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            ws.send_text("ping-1")
            # The fake upstream echoes everything after the subscription
            assert ws.receive_text() == "ping-1"

        assert connector.connections[0].sent[1] == "ping-1"

    def test_binary_upstream_frames_arrive_as_text(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME.encode("utf-8")])
        client = gateway_client_factory(connector)

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            assert ws.receive_text() == POSITION_FRAME

    def test_upstream_close_closes_client_normally(self, gateway_client_factory):
        connector = FakeUpstreamConnector(messages=[POSITION_FRAME], close_when_drained=True)
        client = gateway_client_factory(connector)

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            assert ws.receive_text() == POSITION_FRAME
            closed = _expect_close(ws)

        assert closed.code == 1000
        assert closed.reason == "Upstream closed"

    def test_message_rate_limit_closes_connection(self, gateway_client_factory):
        client = gateway_client_factory(max_messages_per_minute=3)

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            ws.send_text("one")
            assert ws.receive_text() == "one"
            ws.send_text("two")
            assert ws.receive_text() == "two"
            ws.send_text("three")
            closed = _expect_close(ws)

        assert closed.code == 1008
        assert closed.reason == "Rate limit exceeded"


# ---------- Health ----------

class TestHealth:
    def test_health_reports_status(self, gateway_client_factory):
        client = gateway_client_factory()

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["active_connections"] == 0
        assert body["relaying"] == 0

    def test_health_counts_open_connections(self, gateway_client_factory):
        client = gateway_client_factory()

        with client.websocket_connect("/") as ws:
            ws.send_text(json.dumps(make_subscription()))
            ws.send_text("sync")
            ws.receive_text()

            body = client.get("/health").json()

        assert body["active_connections"] == 1
        assert body["relaying"] == 1
        assert body["connections_by_ip"] == {"testclient": 1}

    def test_health_limit_is_per_app(self, gateway_client_factory):
        for _ in range(3):
            gateway_client_factory().get("/health")
        client = gateway_client_factory()

        codes = [client.get("/health").status_code for _ in range(30)]

        assert codes == [200] * 30
        assert client.get("/health").status_code == 429
