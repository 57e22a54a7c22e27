"""Router: forwards events from a matching rule to its targets."""

from typing import Protocol

from ..errors import ConfigurationError, QueueUnavailableError, RoutingError, RoutingFailure
from ..logging_config import get_logger
from ..models import Delivery, Event, PublishResult, Target, TargetKind
from ..tracker import ITracker

logger = get_logger(__name__)


class IBus(Protocol):
    """What the router needs from a bus target."""

    @property
    def name(self) -> str: ...

    async def publish(self, event: Event) -> PublishResult: ...


class IQueue(Protocol):
    """What the router needs from a queue target."""

    @property
    def name(self) -> str: ...

    async def enqueue(self, event: Event) -> str: ...


class IRouter(Protocol):
    """Owns the target registry and performs forwards."""

    async def forward(
        self, event: Event, target: Target, rule_name: str | None = None
    ) -> Delivery:
        """Forward an event to a bus or queue target. Raises RoutingError."""
        ...


class Router:
    """Resolves targets by name, checks capabilities and forwards events.

    Bus targets re-enter rule evaluation on the target bus, so chains of any
    depth (partner bus -> processing bus -> queue) need no special casing.
    The router never retries a failed forward.
    """

    def __init__(self, tracker: ITracker | None = None):
        self._tracker = tracker
        self._buses: dict[str, IBus] = {}
        self._queues: dict[str, IQueue] = {}

    def register_bus(self, bus: IBus) -> None:
        """Make a bus reachable as a target."""
        if bus.name in self._buses:
            raise ConfigurationError(f"Bus {bus.name!r} is already registered")
        self._buses[bus.name] = bus

    def register_queue(self, queue: IQueue) -> None:
        """Make a queue reachable as a target."""
        if queue.name in self._queues:
            raise ConfigurationError(f"Queue {queue.name!r} is already registered")
        self._queues[queue.name] = queue

    def has_target(self, target: Target) -> bool:
        if target.kind is TargetKind.BUS:
            return target.name in self._buses
        return target.name in self._queues

    async def forward(
        self, event: Event, target: Target, rule_name: str | None = None
    ) -> Delivery:
        """Forward an event to a bus or queue target. Raises RoutingError."""
        if not target.capability.permits(target.action, target.name):
            raise RoutingError(
                target.name,
                RoutingFailure.PERMISSION_DENIED,
                f"Capability {target.capability.name!r} does not allow "
                f"{target.action} on {target.name!r}",
            )

        if target.kind is TargetKind.BUS:
            bus = self._buses.get(target.name)
            if bus is None:
                raise RoutingError(
                    target.name, RoutingFailure.NOT_FOUND, f"Bus {target.name!r} not found"
                )
            downstream = await bus.publish(event)
            delivery = Delivery(target=target, rule_name=rule_name, downstream=downstream)
        else:
            queue = self._queues.get(target.name)
            if queue is None:
                raise RoutingError(
                    target.name,
                    RoutingFailure.NOT_FOUND,
                    f"Queue {target.name!r} not found",
                )
            try:
                message_id = await queue.enqueue(event)
            except QueueUnavailableError as e:
                raise RoutingError(
                    target.name, RoutingFailure.UNREACHABLE, str(e)
                ) from e
            delivery = Delivery(target=target, rule_name=rule_name, message_id=message_id)

        logger.debug(
            "Forwarded event %s to %s %s",
            event.id,
            target.kind.value,
            target.name,
            extra={
                "context": {
                    "event_id": event.id,
                    "rule": rule_name,
                    "target": target.name,
                }
            },
        )
        if self._tracker:
            await self._tracker.track(
                "event_forwarded",
                "router",
                {
                    "event_id": event.id,
                    "rule": rule_name,
                    "target": target.name,
                    "target_kind": target.kind.value,
                    "message_id": delivery.message_id,
                },
            )
        return delivery
