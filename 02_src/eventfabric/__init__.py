"""Event fabric: buses, rule matching, routing, durable queues and dispatch."""

from .app import Application, IApplication
from .config import FabricSettings
from .context import FabricContext
from .dispatcher import ConsumerDispatcher, DispatchStats
from .errors import (
    ConfigurationError,
    FabricError,
    HandlerError,
    QueueUnavailableError,
    RoutingError,
    RoutingFailure,
)
from .event_bus import EventBus, IEventBus, RuleHandle
from .matcher import matches
from .models import (
    Capability,
    Delivery,
    Event,
    EventPattern,
    Predicate,
    PublishResult,
    QueueMessage,
    QueueStats,
    Rule,
    Target,
    TargetKind,
    TraceEvent,
)
from .queues import DurableQueue
from .router import IRouter, Router
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    "FabricSettings",
    "FabricContext",
    # Models
    "Event",
    "EventPattern",
    "Predicate",
    "Capability",
    "Target",
    "TargetKind",
    "Rule",
    "Delivery",
    "PublishResult",
    "QueueMessage",
    "QueueStats",
    "TraceEvent",
    # Errors
    "FabricError",
    "ConfigurationError",
    "RoutingError",
    "RoutingFailure",
    "QueueUnavailableError",
    "HandlerError",
    # Components
    "matches",
    "IEventBus",
    "EventBus",
    "RuleHandle",
    "IRouter",
    "Router",
    "DurableQueue",
    "ConsumerDispatcher",
    "DispatchStats",
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
]
