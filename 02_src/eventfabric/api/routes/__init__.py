"""API routes."""

from . import control, events, observability, rules

__all__ = ["control", "events", "observability", "rules"]
