"""Event data model."""

import copy
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _freeze(value: Any) -> Any:
    """Copy a JSON-like payload into read-only mappings and tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return copy.deepcopy(value)


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


@dataclass(frozen=True)
class Event:
    """An immutable event travelling through buses and queues.

    ``id`` is the delivery id assigned at ingress and kept across every hop.
    ``detail`` is copied on construction and exposed read-only (nested
    objects as mappings, arrays as tuples), so concurrent forwards of one
    event all see the same payload.
    """

    source: str
    detail_type: str
    detail: Mapping[str, Any]
    id: str = field(default_factory=_new_id)
    time: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "detail", _freeze(self.detail or {}))

    @classmethod
    def create(
        cls,
        source: str,
        detail_type: str = "",
        detail: Mapping[str, Any] | None = None,
    ) -> "Event":
        """Create an event at ingress, detaching the payload from the caller."""
        if not source:
            raise ValueError("Event source must be a non-empty string")
        return cls(source=source, detail_type=detail_type, detail=detail or {})

    def to_dict(self) -> dict[str, Any]:
        """Plain, JSON-serializable form using the wire field names."""
        return {
            "id": self.id,
            "source": self.source,
            "detail-type": self.detail_type,
            "detail": _thaw(self.detail),
            "time": self.time.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        ts = datetime.fromisoformat(data["time"])
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return cls(
            source=data["source"],
            detail_type=data.get("detail-type", ""),
            detail=data.get("detail") or {},
            id=data["id"],
            time=ts,
        )
