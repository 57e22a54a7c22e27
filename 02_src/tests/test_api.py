"""Tests for the HTTP API."""

import httpx
import pytest

from eventfabric.api import create_fastapi_app
from eventfabric.api.routes import control
from eventfabric.app import Application

from conftest import PARTNER_BUS


@pytest.fixture
async def application(settings):
    """Start an application with its consumer paused so queue contents stay put."""
    app = Application(settings=settings)
    await app.start()
    await app.fabric.stop()
    yield app
    await app.stop()


@pytest.fixture
async def client(application):
    fastapi_app = create_fastapi_app(application)
    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestPublish:
    """Tests for event ingress."""

    @pytest.mark.asyncio
    async def test_publish_to_internal_bus(self, client, application):
        response = await client.post(
            "/api/buses/InternalEventBus/events",
            json={"source": "custom.stripe.test", "detail-type": "custom.test", "detail": {"id": 1}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["bus"] == "InternalEventBus"
        assert data["matched_rules"] == ["InternalToProcessingBusRule"]
        assert data["errors"] == []
        assert (await application.fabric.queue("StripeEventQueue").stats()).visible == 1

    @pytest.mark.asyncio
    async def test_unmatched_event_is_not_an_error(self, client):
        response = await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "unrelated.thing"}
        )

        assert response.status_code == 200
        assert response.json()["matched_rules"] == []

    @pytest.mark.asyncio
    async def test_unknown_bus(self, client):
        response = await client.post("/api/buses/Nope/events", json={"source": "s"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_source(self, client):
        response = await client.post("/api/buses/InternalEventBus/events", json={"detail": {}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_partner_ingress(self, client, application):
        response = await client.post(
            "/api/partner/events",
            json={
                "source": "aws.partner/stripe.com/charge.created",
                "detail-type": "charge.created",
                "detail": {"id": 2},
            },
        )

        assert response.status_code == 200
        assert response.json()["bus"] == PARTNER_BUS
        [message] = await application.fabric.queue("StripeEventQueue").dequeue_batch(10)
        assert message.event.id == response.json()["id"]
        assert message.event.detail == {"id": 2}

    @pytest.mark.asyncio
    async def test_publish_on_partner_bus_by_name(self, client):
        response = await client.post(
            f"/api/buses/{PARTNER_BUS}/events",
            json={"source": "aws.partner/stripe.com/invoice.paid"},
        )

        assert response.status_code == 200
        assert response.json()["matched_rules"] == ["StripePartnerToProcessingBusRule"]


class TestRules:
    """Tests for rule management."""

    @pytest.mark.asyncio
    async def test_list_rules(self, client):
        response = await client.get("/api/buses/ProcessingEventBus/rules")

        assert response.status_code == 200
        names = sorted(r["name"] for r in response.json())
        assert names == ["ProcessingBusToSqsCustomRule", "ProcessingBusToSqsStripeRule"]

    @pytest.mark.asyncio
    async def test_attach_rule(self, client):
        body = {
            "name": "OtherToQueue",
            "pattern": {"source": [{"prefix": "custom.other"}]},
            "targets": [{"type": "queue", "name": "StripeEventQueue"}],
        }

        response = await client.post("/api/buses/InternalEventBus/rules", json=body)
        assert response.status_code == 201
        assert response.json()["pattern"] == {"source": [{"prefix": "custom.other"}]}

        publish = await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.other.thing"}
        )
        assert publish.json()["matched_rules"] == ["OtherToQueue"]

    @pytest.mark.asyncio
    async def test_duplicate_rule_name(self, client):
        body = {
            "name": "InternalToProcessingBusRule",
            "pattern": {"source": ["x"]},
            "targets": [{"type": "bus", "name": "ProcessingEventBus"}],
        }
        response = await client.post("/api/buses/InternalEventBus/rules", json=body)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_target(self, client):
        body = {"pattern": {"source": ["x"]}, "targets": [{"type": "queue", "name": "Nope"}]}
        response = await client.post("/api/buses/InternalEventBus/rules", json=body)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_invalid_pattern(self, client):
        body = {"pattern": {}, "targets": [{"type": "queue", "name": "StripeEventQueue"}]}
        response = await client.post("/api/buses/InternalEventBus/rules", json=body)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cycle_rejected_and_rolled_back(self, client, application):
        body = {
            "name": "BackToInternal",
            "pattern": {"source": ["custom.stripe.test"]},
            "targets": [{"type": "bus", "name": "InternalEventBus"}],
        }

        response = await client.post("/api/buses/ProcessingEventBus/rules", json=body)

        assert response.status_code == 422
        names = [r.name for r in application.fabric.bus("ProcessingEventBus").rules]
        assert "BackToInternal" not in names

    @pytest.mark.asyncio
    async def test_body_bus_must_match_path(self, client, application):
        body = {
            "name": "Elsewhere",
            "bus": "ProcessingEventBus",
            "pattern": {"source": ["custom.other"]},
            "targets": [{"type": "queue", "name": "StripeEventQueue"}],
        }

        response = await client.post("/api/buses/InternalEventBus/rules", json=body)

        assert response.status_code == 422
        for bus in application.fabric.buses.values():
            assert "Elsewhere" not in [r.name for r in bus.rules]

    @pytest.mark.asyncio
    async def test_body_bus_matching_path_accepted(self, client):
        body = {
            "bus": "InternalEventBus",
            "pattern": {"source": ["custom.other"]},
            "targets": [{"type": "queue", "name": "StripeEventQueue"}],
        }

        response = await client.post("/api/buses/InternalEventBus/rules", json=body)

        assert response.status_code == 201
        assert response.json()["bus"] == "InternalEventBus"

    @pytest.mark.asyncio
    async def test_rules_of_unknown_bus(self, client):
        response = await client.get("/api/buses/Nope/rules")
        assert response.status_code == 404


class TestObservability:
    """Tests for trace events and queue stats."""

    @pytest.mark.asyncio
    async def test_queue_stats(self, client):
        await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.stripe.test"}
        )

        response = await client.get("/api/queues/StripeEventQueue/stats")

        assert response.status_code == 200
        assert response.json() == {
            "queue": "StripeEventQueue",
            "visible": 1,
            "hidden": 0,
            "visibility_timeout": 30.0,
            "dead_letter_queue": None,
        }

    @pytest.mark.asyncio
    async def test_unknown_queue_stats(self, client):
        response = await client.get("/api/queues/Nope/stats")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_trace_events(self, client):
        await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.stripe.test"}
        )

        response = await client.get(
            "/api/trace-events", params={"event_type": "event_forwarded"}
        )

        assert response.status_code == 200
        targets = {e["data"]["target"] for e in response.json()}
        assert targets == {"ProcessingEventBus", "StripeEventQueue"}

    @pytest.mark.asyncio
    async def test_trace_events_bad_timestamp(self, client):
        response = await client.get("/api/trace-events", params={"after": "yesterday"})
        assert response.status_code == 422


class TestControl:
    """Tests for control routes."""

    @pytest.mark.asyncio
    async def test_reset(self, client, application):
        await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.stripe.test"}
        )

        response = await client.post("/api/control/reset")

        assert response.status_code == 200
        assert (await application.fabric.queue("StripeEventQueue").stats()).total == 0

    @pytest.mark.asyncio
    async def test_sim_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(control, "_sim_instance", None)

        response = await client.post("/api/control/sim/start")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_purge_queue(self, client, application):
        await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.stripe.test"}
        )

        response = await client.post("/api/control/queues/StripeEventQueue/purge")

        assert response.json() == {"queue": "StripeEventQueue", "purged": 1}
        assert (await application.fabric.queue("StripeEventQueue").stats()).total == 0

    @pytest.mark.asyncio
    async def test_purge_unknown_queue(self, client):
        response = await client.post("/api/control/queues/Nope/purge")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_consumers_start_and_stop(self, client, application):
        dispatcher = application.fabric.dispatchers["StripeEventQueue"]

        response = await client.post("/api/control/consumers/start")
        assert response.json() == {"status": "running"}
        assert dispatcher.running

        response = await client.post("/api/control/consumers/stop")
        assert response.json() == {"status": "stopped"}
        assert not dispatcher.running


class TestTraceByEvent:
    """Tests for following one event through the fabric."""

    @pytest.mark.asyncio
    async def test_filter_by_event_id(self, client):
        first = await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.stripe.test"}
        )
        await client.post(
            "/api/buses/InternalEventBus/events", json={"source": "custom.stripe.test"}
        )
        event_id = first.json()["id"]

        response = await client.get("/api/trace-events", params={"event_id": event_id})

        traces = response.json()
        assert {t["data"]["event_id"] for t in traces} == {event_id}
        assert {t["actor"] for t in traces} >= {
            "bus:InternalEventBus",
            "bus:ProcessingEventBus",
            "router",
            "queue:StripeEventQueue",
        }

    @pytest.mark.asyncio
    async def test_list_queues(self, client):
        response = await client.get("/api/queues")
        assert [q["queue"] for q in response.json()] == ["StripeEventQueue"]
