"""Outcomes of publish and forward operations."""

from dataclasses import dataclass, field
from typing import Optional

from ..errors import RoutingError
from .rules import Target


@dataclass
class Delivery:
    """A successful forward of one event to one target."""

    target: Target
    rule_name: str | None = None
    message_id: str | None = None  # set for queue targets
    downstream: Optional["PublishResult"] = None  # set for bus targets

    def to_dict(self) -> dict:
        return {
            "target": self.target.name,
            "kind": self.target.kind.value,
            "rule": self.rule_name,
            "message_id": self.message_id,
            "downstream": self.downstream.to_dict() if self.downstream else None,
        }


@dataclass
class PublishResult:
    """What happened when an event was published on a bus.

    ``errors`` holds the routing failures of this hop and of every
    downstream bus hop reached from it.
    """

    event_id: str
    bus_name: str
    matched_rules: list[str] = field(default_factory=list)
    deliveries: list[Delivery] = field(default_factory=list)
    errors: list[RoutingError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def dropped(self) -> bool:
        """True when no rule on the bus matched the event."""
        return not self.matched_rules

    def message_ids(self) -> list[str]:
        """Queue message ids produced anywhere along this publish."""
        ids = []
        for delivery in self.deliveries:
            if delivery.message_id:
                ids.append(delivery.message_id)
            if delivery.downstream:
                ids.extend(delivery.downstream.message_ids())
        return ids

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "bus": self.bus_name,
            "matched_rules": list(self.matched_rules),
            "deliveries": [d.to_dict() for d in self.deliveries],
            "errors": [e.to_dict() for e in self.errors],
        }
