"""EventBus implementation: rule evaluation and fan-out."""

import asyncio
import uuid
from typing import Iterable, Protocol

from ..errors import RoutingError, RoutingFailure
from ..logging_config import get_logger
from ..matcher import matches
from ..models import Event, EventPattern, PublishResult, Rule, Target
from ..router import IRouter
from ..tracker import ITracker

logger = get_logger(__name__)


class IEventBus(Protocol):
    """Named channel evaluating published events against attached rules."""

    @property
    def name(self) -> str:
        """Bus name, unique within the fabric."""
        ...

    def attach_rule(
        self,
        pattern: EventPattern,
        targets: Iterable[Target],
        name: str | None = None,
    ) -> "RuleHandle":
        """Attach a rule and return its handle."""
        ...

    async def publish(self, event: Event) -> PublishResult:
        """Publish an event: forward it to the targets of every matching rule."""
        ...


class RuleHandle:
    """Reference to a rule attached to a bus."""

    def __init__(self, bus: "EventBus", rule: Rule):
        self._bus = bus
        self.rule = rule

    @property
    def name(self) -> str:
        return self.rule.name

    def detach(self) -> None:
        """Remove the rule from its bus."""
        self._bus.detach_rule(self.rule.name)


class EventBus:
    """In-memory event bus. Events are not stored: unmatched events are dropped."""

    def __init__(self, name: str, router: IRouter, tracker: ITracker | None = None):
        self._name = name
        self._router = router
        self._tracker = tracker
        self._rules: dict[str, Rule] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules.values())

    def attach_rule(
        self,
        pattern: EventPattern,
        targets: Iterable[Target],
        name: str | None = None,
    ) -> RuleHandle:
        """Attach a rule and return its handle."""
        if name is None:
            name = f"{self._name}-rule-{uuid.uuid4().hex[:8]}"
        if name in self._rules:
            raise ValueError(f"Rule {name!r} already attached to bus {self._name!r}")

        rule = Rule(name=name, bus_name=self._name, pattern=pattern, targets=tuple(targets))
        self._rules[name] = rule
        logger.info(
            "Attached rule %s to bus %s (%s targets)",
            name,
            self._name,
            len(rule.targets),
        )
        return RuleHandle(self, rule)

    def detach_rule(self, name: str) -> None:
        """Remove a rule by name. Unknown names are ignored."""
        if self._rules.pop(name, None) is not None:
            logger.info("Detached rule %s from bus %s", name, self._name)

    async def publish(self, event: Event) -> PublishResult:
        """Publish an event: forward it to the targets of every matching rule.

        All matching rules fire, concurrently and in no particular order.
        Routing failures are collected in the result, never raised.
        """
        result = PublishResult(event_id=event.id, bus_name=self._name)

        # Snapshot so concurrent attach/detach cannot disturb this publish
        matched = [rule for rule in list(self._rules.values()) if matches(event, rule.pattern)]
        result.matched_rules = [rule.name for rule in matched]

        if not matched:
            logger.debug(
                "No rule matched event %s (source=%s) on bus %s; dropped",
                event.id,
                event.source,
                self._name,
            )
            await self._track("event_dropped", event, {})
            return result

        await self._track("event_published", event, {"matched_rules": result.matched_rules})

        forwards = [(rule, target) for rule in matched for target in rule.targets]
        outcomes = await asyncio.gather(
            *[self._router.forward(event, target, rule.name) for rule, target in forwards],
            return_exceptions=True,
        )

        for (rule, target), outcome in zip(forwards, outcomes):
            if isinstance(outcome, RoutingError):
                error = outcome
            elif isinstance(outcome, Exception):
                logger.error(
                    "Unexpected error forwarding event %s to %s",
                    event.id,
                    target.name,
                    exc_info=outcome,
                )
                error = RoutingError(target.name, RoutingFailure.UNREACHABLE, str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.deliveries.append(outcome)
                if outcome.downstream:
                    result.errors.extend(outcome.downstream.errors)
                continue

            result.errors.append(error)
            logger.warning(
                "Routing failed for event %s via rule %s: %s",
                event.id,
                rule.name,
                error.message,
                extra={
                    "context": {
                        "bus": self._name,
                        "rule": rule.name,
                        "event_id": event.id,
                        "reason": error.reason.value,
                    }
                },
            )
            await self._track("routing_failed", event, {"rule": rule.name, **error.to_dict()})

        return result

    async def _track(self, event_type: str, event: Event, data: dict) -> None:
        if self._tracker:
            await self._tracker.track(
                event_type,
                f"bus:{self._name}",
                {"event_id": event.id, "source": event.source, **data},
            )
