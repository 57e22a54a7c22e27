"""Core data models for the event fabric."""

from .events import Event
from .queue import QueueMessage, QueueStats
from .results import Delivery, PublishResult
from .rules import (
    ACTION_PUT_EVENTS,
    ACTION_SEND_MESSAGE,
    Capability,
    EventPattern,
    Predicate,
    PredicateKind,
    Rule,
    Target,
    TargetKind,
)
from .tracing import TraceEvent

__all__ = [
    # Events
    "Event",
    # Rules
    "ACTION_PUT_EVENTS",
    "ACTION_SEND_MESSAGE",
    "Capability",
    "EventPattern",
    "Predicate",
    "PredicateKind",
    "Rule",
    "Target",
    "TargetKind",
    # Results
    "Delivery",
    "PublishResult",
    # Queue
    "QueueMessage",
    "QueueStats",
    # Tracing
    "TraceEvent",
]
