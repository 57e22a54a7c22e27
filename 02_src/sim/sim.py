"""SIM implementation - simulated Stripe partner feed for manual testing."""

import asyncio
import random
import uuid
from typing import Protocol

import httpx

from eventfabric.logging_config import get_logger
from eventfabric.topology import CUSTOM_STRIPE_TEST_SOURCE, STRIPE_PARTNER_SOURCE_PREFIX
from eventfabric.tracker import ITracker

logger = get_logger(__name__)

STRIPE_EVENT_TYPES = [
    "charge.created",
    "charge.succeeded",
    "payment_intent.created",
    "payment_intent.succeeded",
    "customer.created",
    "invoice.paid",
]


class ISim(Protocol):
    """Generate partner and internal events against the ingress API."""

    async def start(self) -> None:
        """Start the scenario."""
        ...

    async def stop(self) -> None:
        """Stop the scenario."""
        ...


def stripe_partner_event(event_type: str) -> dict:
    """Build an ingress body shaped like an event from the Stripe partner source."""
    object_type = event_type.split(".")[0]
    return {
        "source": f"{STRIPE_PARTNER_SOURCE_PREFIX}/{event_type}",
        "detail-type": event_type,
        "detail": {
            "id": f"evt_{uuid.uuid4().hex[:24]}",
            "type": event_type,
            "data": {
                "object": {
                    "id": f"{object_type[:3]}_{uuid.uuid4().hex[:14]}",
                    "object": object_type,
                    "amount": random.randint(100, 100_000),
                    "currency": "usd",
                }
            },
        },
    }


class Sim:
    """Posts Stripe-like events to the partner ingress and test events to the internal bus."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        tracker: ITracker | None = None,
        internal_bus: str = "InternalEventBus",
        rounds: int = 3,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_url = api_url
        self._tracker = tracker
        self._internal_bus = internal_bus
        self._rounds = rounds
        self._running = False
        self._task: asyncio.Task | None = None
        self._client: httpx.AsyncClient | None = client
        self._owns_client = client is None

    def set_tracker(self, tracker: ITracker) -> None:
        """Inject tracker for SIM trace events."""
        self._tracker = tracker

    async def start(self) -> None:
        """Start the scenario in the background."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient()

        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop the scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send_partner_event(self, event_type: str) -> dict | None:
        """Send one Stripe-like event through the partner ingress."""
        return await self._post("/api/partner/events", stripe_partner_event(event_type))

    async def send_internal_event(self, detail: dict) -> dict | None:
        """Send one custom test event through the internal bus."""
        body = {
            "source": CUSTOM_STRIPE_TEST_SOURCE,
            "detail-type": "custom.test",
            "detail": detail,
        }
        return await self._post(f"/api/buses/{self._internal_bus}/events", body)

    async def _run_scenario(self) -> None:
        """Send a few rounds of partner and internal events."""
        sent = 0
        try:
            if self._tracker:
                await self._tracker.track(
                    "sim_started", "sim", {"rounds": self._rounds}
                )

            for i in range(self._rounds):
                if not self._running:
                    break

                for event_type in random.sample(STRIPE_EVENT_TYPES, 3):
                    if not self._running:
                        break
                    await self.send_partner_event(event_type)
                    sent += 1
                    await asyncio.sleep(random.uniform(0.5, 1.5))

                await self.send_internal_event({"id": i + 1})
                sent += 1

                # Small delay between rounds
                await asyncio.sleep(2)

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)
        finally:
            if self._tracker:
                await self._tracker.track("sim_completed", "sim", {"sent": sent})

    async def _post(self, path: str, body: dict) -> dict | None:
        """Post an event via HTTP API. Returns the publish response body."""
        if not self._client:
            return None

        try:
            response = await self._client.post(
                f"{self._api_url}{path}",
                json=body,
                timeout=10.0,
            )
        except httpx.HTTPError as e:
            logger.error("SIM: Failed to send event: %s", e)
            return None

        if response.status_code != 200:
            logger.error("SIM: Error sending event to %s: %s", path, response.status_code)
            return None

        data = response.json()
        logger.info(
            "SIM: %s -> %s matched %s",
            body["source"],
            data.get("bus"),
            data.get("matched_rules"),
        )
        if self._tracker:
            await self._tracker.track(
                "sim_event_sent",
                "sim",
                {"source": body["source"], "event_id": data.get("id")},
            )
        return data
