"""Stripe event processor: the handler bound to the Stripe event queue."""

import json
from typing import Protocol

from ..logging_config import get_logger
from ..models import Event

logger = get_logger(__name__)


class IEventProcessor(Protocol):
    """A queue consumer. Raising from handle() signals failure."""

    async def handle(self, event: Event) -> None:
        """Process one event."""
        ...


class StripeEventProcessor:
    """Logs every event it receives. Business logic is out of scope."""

    def __init__(self) -> None:
        self.processed = 0

    async def handle(self, event: Event) -> None:
        """Log the event payload."""
        logger.info(
            "Processor triggered by queue: %s",
            json.dumps(event.to_dict(), ensure_ascii=False),
            extra={"context": {"event_id": event.id, "source": event.source}},
        )
        self.processed += 1
