"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single observability event recorded along a routing path."""

    id: str
    event_type: str  # e.g. "event_forwarded", "message_acked"
    actor: str  # who created this event
    data: dict  # full self-contained data for display
    timestamp: datetime
