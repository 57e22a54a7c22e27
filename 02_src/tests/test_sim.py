"""Tests for the SIM partner feed."""

import httpx
import pytest

from eventfabric.api import create_fastapi_app
from eventfabric.app import Application
from sim import Sim, stripe_partner_event


class TestStripePartnerEvent:
    """Tests for the event body builder."""

    def test_body_shape(self):
        body = stripe_partner_event("charge.succeeded")

        assert body["source"] == "aws.partner/stripe.com/charge.succeeded"
        assert body["detail-type"] == "charge.succeeded"
        assert body["detail"]["id"].startswith("evt_")
        assert body["detail"]["data"]["object"]["object"] == "charge"


class TestSimAgainstApi:
    """Tests for the SIM posting into the API."""

    @pytest.mark.asyncio
    async def test_send_events(self, settings, tracker, storage):
        application = Application(settings=settings)
        await application.start()
        await application.fabric.stop()
        transport = httpx.ASGITransport(app=create_fastapi_app(application))

        try:
            async with httpx.AsyncClient(transport=transport) as client:
                sim = Sim(api_url="http://test", tracker=tracker, client=client)
                partner = await sim.send_partner_event("invoice.paid")
                internal = await sim.send_internal_event({"id": 5})

            assert partner["matched_rules"] == ["StripePartnerToProcessingBusRule"]
            assert internal["matched_rules"] == ["InternalToProcessingBusRule"]
            stats = await application.fabric.queue("StripeEventQueue").stats()
            assert stats.visible == 2
            sent = await storage.get_trace_events(event_types=["sim_event_sent"])
            assert len(sent) == 2
        finally:
            await application.stop()

    @pytest.mark.asyncio
    async def test_unreachable_api(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            sim = Sim(api_url="http://test", client=client)
            assert await sim.send_partner_event("charge.created") is None
