"""Consumer dispatcher: drains a queue into a registered handler."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from ..errors import HandlerError
from ..logging_config import get_logger
from ..models import Event, QueueMessage
from ..tracker import ITracker

logger = get_logger(__name__)


EventHandler = Callable[[Event], Awaitable[None]]


class IDispatchQueue(Protocol):
    """Queue operations the dispatcher relies on."""

    @property
    def name(self) -> str: ...

    @property
    def visibility_timeout(self) -> float: ...

    async def dequeue_batch(self, max_messages: int = 1) -> list[QueueMessage]: ...

    async def ack(self, message_id: str) -> None: ...


@dataclass
class DispatchStats:
    """Outcome of one poll."""

    received: int = 0
    acked: int = 0
    failed: int = 0


class ConsumerDispatcher:
    """Polls a queue and invokes the handler for every message.

    Success acks the message. A failure (any exception, HandlerError
    included) or a handler timeout leaves the message hidden; it becomes
    visible again when its visibility timeout lapses. Redelivery is the only
    retry mechanism: nothing is retried within one invocation.
    """

    def __init__(
        self,
        queue: IDispatchQueue,
        handler: EventHandler,
        batch_size: int = 10,
        poll_interval: float = 1.0,
        handler_timeout: float | None = None,
        workers: int = 1,
        tracker: ITracker | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._queue = queue
        self._handler = handler
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._handler_timeout = (
            handler_timeout if handler_timeout is not None else queue.visibility_timeout
        )
        if self._handler_timeout > queue.visibility_timeout:
            logger.warning(
                "Handler timeout %.1fs exceeds visibility timeout %.1fs of %s; "
                "messages may be redelivered while still being handled",
                self._handler_timeout,
                queue.visibility_timeout,
                queue.name,
            )
        self._workers = workers
        self._tracker = tracker
        self._tasks: list[asyncio.Task] = []
        self._running = False

    @property
    def queue_name(self) -> str:
        return self._queue.name

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the poll loops as asyncio Tasks."""
        if self._running:
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(self._poll_loop(i)) for i in range(self._workers)
        ]
        logger.info(
            "Dispatcher for %s started with %s worker(s)", self._queue.name, self._workers
        )

    async def stop(self) -> None:
        """Stop the poll loops. Messages in flight stay hidden and get redelivered."""
        self._running = False

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Dispatcher for %s stopped", self._queue.name)

    async def run_once(self) -> DispatchStats:
        """Dequeue one batch and handle its messages concurrently."""
        messages = await self._queue.dequeue_batch(self._batch_size)
        stats = DispatchStats(received=len(messages))
        if not messages:
            return stats

        outcomes = await asyncio.gather(*[self._process(m) for m in messages])
        stats.acked = sum(1 for ok in outcomes if ok)
        stats.failed = stats.received - stats.acked
        return stats

    async def _process(self, message: QueueMessage) -> bool:
        """Invoke the handler for one message. Returns True if acked."""
        context = {
            "queue": self._queue.name,
            "message_id": message.message_id,
            "event_id": message.event.id,
            "receive_count": message.receive_count,
        }
        try:
            await asyncio.wait_for(self._handler(message.event), timeout=self._handler_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Handler timed out after %.1fs on message %s; left for redelivery",
                self._handler_timeout,
                message.message_id,
                extra={"context": context},
            )
            await self._track_failure(message, "timeout")
            return False
        except HandlerError as e:
            logger.warning(
                "Handler rejected message %s: %s; left for redelivery",
                message.message_id,
                e,
                extra={"context": context},
            )
            await self._track_failure(message, str(e))
            return False
        except Exception as e:
            logger.exception(
                "Handler failed on message %s; left for redelivery",
                message.message_id,
                extra={"context": context},
            )
            await self._track_failure(message, f"{type(e).__name__}: {e}")
            return False

        await self._queue.ack(message.message_id)
        return True

    async def _poll_loop(self, worker: int) -> None:
        """Poll until stopped, sleeping when the queue had nothing visible."""
        while self._running:
            try:
                stats = await self.run_once()
            except Exception:
                logger.exception(
                    "Dispatcher worker %s for %s failed to poll", worker, self._queue.name
                )
                stats = DispatchStats()

            if stats.received == 0:
                await asyncio.sleep(self._poll_interval)

    async def _track_failure(self, message: QueueMessage, error: str) -> None:
        if self._tracker:
            await self._tracker.track(
                "handler_failed",
                f"dispatcher:{self._queue.name}",
                {
                    "message_id": message.message_id,
                    "event_id": message.event.id,
                    "receive_count": message.receive_count,
                    "error": error,
                },
            )
