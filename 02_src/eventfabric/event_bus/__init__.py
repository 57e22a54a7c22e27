"""EventBus module."""

from .event_bus import EventBus, IEventBus, RuleHandle

__all__ = ["EventBus", "IEventBus", "RuleHandle"]
