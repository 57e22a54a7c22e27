"""Rule matcher: decides whether an event satisfies an event pattern."""

from collections.abc import Mapping
from typing import Any

from ..models import Event, EventPattern

_MISSING = object()


def resolve_field(event: Event, field_name: str) -> Any:
    """Look up a pattern field on an event.

    Supported names: ``source``, ``detail-type`` (or ``detail_type``), ``id``
    and dotted paths into the payload such as ``detail.type`` or
    ``detail.data.object``. Returns a sentinel when the field is absent.
    """
    if field_name == "source":
        return event.source
    if field_name in ("detail-type", "detail_type"):
        return event.detail_type
    if field_name == "id":
        return event.id
    if field_name.startswith("detail."):
        value: Any = event.detail
        for part in field_name.split(".")[1:]:
            if not isinstance(value, Mapping) or part not in value:
                return _MISSING
            value = value[part]
        return value
    return _MISSING


def matches(event: Event, pattern: EventPattern) -> bool:
    """Return True iff every pattern field has at least one satisfied predicate."""
    for field_name, predicates in pattern.fields.items():
        value = resolve_field(event, field_name)
        # All predicates are string-based; absent or non-string values never match
        if not isinstance(value, str):
            return False
        if not any(predicate.test(value) for predicate in predicates):
            return False
    return True
