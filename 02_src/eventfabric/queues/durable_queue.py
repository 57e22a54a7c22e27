"""Durable queue with visibility timeouts and at-least-once delivery."""

import asyncio
import time
import uuid
from typing import Callable, Optional

from ..errors import QueueUnavailableError
from ..logging_config import get_logger
from ..models import Event, QueueMessage, QueueStats
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)

Clock = Callable[[], float]

DEFAULT_VISIBILITY_TIMEOUT = 30.0
DEFAULT_ENQUEUE_TIMEOUT = 5.0


class DurableQueue:
    """Buffers events between producers and a consumer.

    Message lifecycle::

        Visible --dequeue--> Hidden --ack--> Deleted
        Hidden --visibility timeout | nack--> Visible

    Claims are serialized with an asyncio.Lock so that two concurrent
    ``dequeue_batch`` calls never return the same hidden message.
    """

    def __init__(
        self,
        name: str,
        storage: IStorage,
        visibility_timeout: float = DEFAULT_VISIBILITY_TIMEOUT,
        enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT,
        max_receive_count: int | None = None,
        dead_letter_queue: Optional["DurableQueue"] = None,
        clock: Clock = time.time,
        tracker: ITracker | None = None,
    ):
        if visibility_timeout <= 0:
            raise ValueError("visibility_timeout must be positive")
        if max_receive_count is not None and max_receive_count < 1:
            raise ValueError("max_receive_count must be at least 1")
        self._name = name
        self._storage = storage
        self._visibility_timeout = visibility_timeout
        self._enqueue_timeout = enqueue_timeout
        self._max_receive_count = max_receive_count
        self._dead_letter_queue = dead_letter_queue
        self._clock = clock
        self._tracker = tracker
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def visibility_timeout(self) -> float:
        return self._visibility_timeout

    @property
    def dead_letter_queue(self) -> Optional["DurableQueue"]:
        return self._dead_letter_queue

    async def enqueue(self, event: Event) -> str:
        """Store an event and return its message id."""
        now = self._clock()
        message = QueueMessage(
            message_id=str(uuid.uuid4()),
            queue_name=self._name,
            event=event,
            enqueued_at=now,
            visible_at=now,
        )
        try:
            await asyncio.wait_for(
                self._storage.insert_queue_message(message),
                timeout=self._enqueue_timeout,
            )
        except asyncio.TimeoutError:
            raise QueueUnavailableError(
                f"Queue {self._name} did not accept message within "
                f"{self._enqueue_timeout}s"
            ) from None

        logger.debug(
            "Enqueued event %s on %s as %s",
            event.id,
            self._name,
            message.message_id,
            extra={"context": {"queue": self._name, "event_id": event.id}},
        )
        await self._track(
            "message_enqueued",
            {"message_id": message.message_id, "event_id": event.id},
        )
        return message.message_id

    async def dequeue_batch(self, max_messages: int = 1) -> list[QueueMessage]:
        """Return up to `max_messages` visible messages, hiding them for the visibility timeout."""
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")

        async with self._lock:
            now = self._clock()
            claimed = await self._storage.claim_queue_messages(
                self._name,
                max_messages,
                now,
                now + self._visibility_timeout,
            )
            if self._max_receive_count is None:
                return claimed

            delivered = []
            for message in claimed:
                # receive_count already includes this receive
                if message.receive_count > self._max_receive_count:
                    await self._dead_letter(message, now)
                else:
                    delivered.append(message)
            return delivered

    async def ack(self, message_id: str) -> None:
        """Delete a message. Acking an unknown or already deleted id is a no-op."""
        deleted = await self._storage.delete_queue_message(self._name, message_id)
        if deleted:
            await self._track("message_acked", {"message_id": message_id})
        else:
            logger.debug("Ack for unknown message %s on %s ignored", message_id, self._name)

    async def nack(self, message_id: str) -> None:
        """Make a hidden message visible again before its timeout elapses."""
        async with self._lock:
            released = await self._storage.make_queue_message_visible(
                self._name, message_id, self._clock()
            )
        if released:
            await self._track("message_nacked", {"message_id": message_id})

    async def stats(self) -> QueueStats:
        visible, hidden = await self._storage.count_queue_messages(
            self._name, self._clock()
        )
        return QueueStats(queue_name=self._name, visible=visible, hidden=hidden)

    async def purge(self) -> int:
        """Delete every message in the queue, hidden or not."""
        async with self._lock:
            count = await self._storage.purge_queue(self._name)
        logger.info("Purged %s messages from %s", count, self._name)
        return count

    async def _dead_letter(self, message: QueueMessage, now: float) -> None:
        if self._dead_letter_queue is not None:
            await self._storage.move_queue_message(
                message.message_id, self._name, self._dead_letter_queue.name, now
            )
            destination = self._dead_letter_queue.name
        else:
            await self._storage.delete_queue_message(self._name, message.message_id)
            destination = None

        logger.error(
            "Message %s on %s exceeded %s receives; dead-lettered to %s",
            message.message_id,
            self._name,
            self._max_receive_count,
            destination or "nowhere (dropped)",
            extra={"context": {"queue": self._name, "event_id": message.event.id}},
        )
        await self._track(
            "message_dead_lettered",
            {
                "message_id": message.message_id,
                "event_id": message.event.id,
                "receive_count": message.receive_count - 1,
                "dead_letter_queue": destination,
            },
        )

    async def _track(self, event_type: str, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(event_type, f"queue:{self._name}", data)
