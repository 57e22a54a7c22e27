"""FabricContext: the container holding every bus, queue and dispatcher."""

import time
from typing import Iterable

from .dispatcher import ConsumerDispatcher, EventHandler
from .errors import ConfigurationError
from .event_bus import EventBus, RuleHandle
from .logging_config import get_logger
from .models import EventPattern, Target, TargetKind
from .queues import DEFAULT_ENQUEUE_TIMEOUT, DEFAULT_VISIBILITY_TIMEOUT, Clock, DurableQueue
from .router import Router
from .storage import IStorage
from .tracker import ITracker

logger = get_logger(__name__)


class FabricContext:
    """Creates and owns buses, queues and dispatchers for the fabric's lifetime.

    Components get their collaborators from here instead of global lookups,
    so a fabric can be built in isolation (one per test, for instance).
    """

    def __init__(
        self,
        storage: IStorage,
        tracker: ITracker | None = None,
        clock: Clock = time.time,
    ):
        self._storage = storage
        self._tracker = tracker
        self._clock = clock
        self._router = Router(tracker=tracker)
        self._buses: dict[str, EventBus] = {}
        self._queues: dict[str, DurableQueue] = {}
        self._dispatchers: dict[str, ConsumerDispatcher] = {}

    @property
    def router(self) -> Router:
        return self._router

    @property
    def buses(self) -> dict[str, EventBus]:
        return dict(self._buses)

    @property
    def queues(self) -> dict[str, DurableQueue]:
        return dict(self._queues)

    @property
    def dispatchers(self) -> dict[str, ConsumerDispatcher]:
        return dict(self._dispatchers)

    def create_bus(self, name: str) -> EventBus:
        """Create a bus. Names must be unique within the fabric."""
        if not name:
            raise ConfigurationError("Bus name must not be empty")
        if name in self._buses:
            raise ConfigurationError(f"Bus {name!r} already exists")

        bus = EventBus(name, self._router, tracker=self._tracker)
        self._router.register_bus(bus)
        self._buses[name] = bus
        logger.info("Created bus %s", name)
        return bus

    def create_queue(
        self,
        name: str,
        visibility_timeout: float = DEFAULT_VISIBILITY_TIMEOUT,
        enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT,
        max_receive_count: int | None = None,
        dead_letter_queue: str | None = None,
    ) -> DurableQueue:
        """Create a queue, optionally dead-lettering into an existing queue."""
        if not name:
            raise ConfigurationError("Queue name must not be empty")
        if name in self._queues:
            raise ConfigurationError(f"Queue {name!r} already exists")

        dlq = None
        if dead_letter_queue is not None:
            dlq = self.queue(dead_letter_queue)

        queue = DurableQueue(
            name,
            self._storage,
            visibility_timeout=visibility_timeout,
            enqueue_timeout=enqueue_timeout,
            max_receive_count=max_receive_count,
            dead_letter_queue=dlq,
            clock=self._clock,
            tracker=self._tracker,
        )
        self._router.register_queue(queue)
        self._queues[name] = queue
        logger.info(
            "Created queue %s (visibility timeout %.1fs)", name, visibility_timeout
        )
        return queue

    def bus(self, name: str) -> EventBus:
        try:
            return self._buses[name]
        except KeyError:
            raise KeyError(f"Unknown bus {name!r}") from None

    def queue(self, name: str) -> DurableQueue:
        try:
            return self._queues[name]
        except KeyError:
            raise KeyError(f"Unknown queue {name!r}") from None

    def add_rule(
        self,
        bus_name: str,
        pattern: EventPattern,
        targets: Iterable[Target],
        name: str | None = None,
    ) -> RuleHandle:
        """Attach a rule to a bus by name and re-check the wiring.

        Raises ConfigurationError, with the rule detached again, when a target
        is unknown or the rule closes a bus cycle.
        """
        handle = self.bus(bus_name).attach_rule(pattern, targets, name=name)
        try:
            self.validate()
        except ConfigurationError:
            handle.detach()
            raise
        return handle

    def register_handler(
        self,
        queue_name: str,
        handler: EventHandler,
        batch_size: int = 10,
        poll_interval: float = 1.0,
        handler_timeout: float | None = None,
        workers: int = 1,
    ) -> ConsumerDispatcher:
        """Bind the single consumer handler of a queue."""
        if queue_name not in self._queues:
            raise ConfigurationError(f"Cannot bind handler: unknown queue {queue_name!r}")
        if queue_name in self._dispatchers:
            raise ConfigurationError(f"Queue {queue_name!r} already has a handler")

        dispatcher = ConsumerDispatcher(
            self._queues[queue_name],
            handler,
            batch_size=batch_size,
            poll_interval=poll_interval,
            handler_timeout=handler_timeout,
            workers=workers,
            tracker=self._tracker,
        )
        self._dispatchers[queue_name] = dispatcher
        return dispatcher

    def validate(self) -> None:
        """Check the wiring: every target exists and bus-to-bus rules form no cycle."""
        edges: dict[str, set[str]] = {name: set() for name in self._buses}
        for bus in self._buses.values():
            for rule in bus.rules:
                for target in rule.targets:
                    if not self._router.has_target(target):
                        raise ConfigurationError(
                            f"Rule {rule.name!r} on {bus.name!r} targets unknown "
                            f"{target.kind.value} {target.name!r}"
                        )
                    if target.kind is TargetKind.BUS:
                        edges[bus.name].add(target.name)

        visiting: set[str] = set()
        done: set[str] = set()

        def visit(name: str, path: list[str]) -> None:
            if name in done:
                return
            if name in visiting:
                cycle = " -> ".join(path[path.index(name):] + [name])
                raise ConfigurationError(f"Bus rules form a cycle: {cycle}")
            visiting.add(name)
            for nxt in sorted(edges[name]):
                visit(nxt, path + [name])
            visiting.discard(name)
            done.add(name)

        for name in sorted(edges):
            visit(name, [])

    async def start(self) -> None:
        """Start every dispatcher."""
        for dispatcher in self._dispatchers.values():
            await dispatcher.start()

    async def stop(self) -> None:
        """Stop every dispatcher."""
        for dispatcher in self._dispatchers.values():
            await dispatcher.stop()
