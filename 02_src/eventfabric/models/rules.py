"""Rule, pattern and target data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

ACTION_PUT_EVENTS = "bus:PutEvents"
ACTION_SEND_MESSAGE = "queue:SendMessage"


class PredicateKind(str, Enum):
    """Kinds of string predicates a pattern field may hold."""

    EXACT = "exact"
    PREFIX = "prefix"


@dataclass(frozen=True)
class Predicate:
    """A single exact-string or prefix test over one field value."""

    kind: PredicateKind
    value: str

    @classmethod
    def exact(cls, value: str) -> "Predicate":
        return cls(PredicateKind.EXACT, value)

    @classmethod
    def prefix(cls, value: str) -> "Predicate":
        return cls(PredicateKind.PREFIX, value)

    @classmethod
    def from_raw(cls, raw: Any) -> "Predicate":
        """Parse ``"value"`` (exact) or ``{"prefix": "value"}``."""
        if isinstance(raw, str):
            return cls.exact(raw)
        if isinstance(raw, Mapping) and set(raw) == {"prefix"}:
            value = raw["prefix"]
            if isinstance(value, str):
                return cls.prefix(value)
        raise ValueError(f"Unsupported pattern predicate: {raw!r}")

    def test(self, candidate: str) -> bool:
        if self.kind is PredicateKind.PREFIX:
            return candidate.startswith(self.value)
        return candidate == self.value

    def to_raw(self) -> Any:
        if self.kind is PredicateKind.PREFIX:
            return {"prefix": self.value}
        return self.value


@dataclass(frozen=True)
class EventPattern:
    """Field name -> predicates. AND across fields, OR within a field."""

    fields: Mapping[str, tuple[Predicate, ...]]

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("Event pattern must name at least one field")
        for name, predicates in self.fields.items():
            if not predicates:
                raise ValueError(f"Pattern field {name!r} has no predicates")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "EventPattern":
        """Parse an EventBridge-style pattern, e.g. ``{"source": [{"prefix": "aws.partner/"}]}``."""
        parsed: dict[str, tuple[Predicate, ...]] = {}
        for name, predicates in raw.items():
            if not isinstance(predicates, (list, tuple)):
                raise ValueError(f"Pattern field {name!r} must be a list of predicates")
            parsed[name] = tuple(Predicate.from_raw(p) for p in predicates)
        return cls(parsed)

    @classmethod
    def sources(cls, *sources: str) -> "EventPattern":
        return cls({"source": tuple(Predicate.exact(s) for s in sources)})

    @classmethod
    def source_prefix(cls, prefix: str) -> "EventPattern":
        return cls({"source": (Predicate.prefix(prefix),)})

    def to_dict(self) -> dict[str, list]:
        return {
            name: [p.to_raw() for p in predicates]
            for name, predicates in self.fields.items()
        }


@dataclass(frozen=True)
class Capability:
    """Permission to perform actions on named resources (a role, in AWS terms)."""

    name: str
    actions: frozenset[str]
    resources: frozenset[str]

    def permits(self, action: str, resource: str) -> bool:
        return action in self.actions and resource in self.resources


class TargetKind(str, Enum):
    """What a rule forwards to."""

    BUS = "bus"
    QUEUE = "queue"


@dataclass(frozen=True)
class Target:
    """A bus or queue a matching event is forwarded to.

    Targets hold names, not objects: the Router resolves them per forward.
    """

    kind: TargetKind
    name: str
    capability: Capability
    id: str = ""

    @property
    def action(self) -> str:
        if self.kind is TargetKind.BUS:
            return ACTION_PUT_EVENTS
        return ACTION_SEND_MESSAGE

    @classmethod
    def bus(
        cls,
        name: str,
        capability: Capability | None = None,
        target_id: str = "",
    ) -> "Target":
        if capability is None:
            capability = Capability(
                name=f"{name}:implicit",
                actions=frozenset({ACTION_PUT_EVENTS}),
                resources=frozenset({name}),
            )
        return cls(TargetKind.BUS, name, capability, target_id or name)

    @classmethod
    def queue(
        cls,
        name: str,
        capability: Capability | None = None,
        target_id: str = "",
    ) -> "Target":
        if capability is None:
            capability = Capability(
                name=f"{name}:implicit",
                actions=frozenset({ACTION_SEND_MESSAGE}),
                resources=frozenset({name}),
            )
        return cls(TargetKind.QUEUE, name, capability, target_id or name)


@dataclass(frozen=True)
class Rule:
    """A pattern and its targets, attached to exactly one bus."""

    name: str
    bus_name: str
    pattern: EventPattern
    targets: tuple[Target, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.targets:
            raise ValueError(f"Rule {self.name!r} must have at least one target")
