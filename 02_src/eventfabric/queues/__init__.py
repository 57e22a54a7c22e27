"""Queues module."""

from .durable_queue import (
    DEFAULT_ENQUEUE_TIMEOUT,
    DEFAULT_VISIBILITY_TIMEOUT,
    Clock,
    DurableQueue,
)

__all__ = [
    "Clock",
    "DEFAULT_ENQUEUE_TIMEOUT",
    "DEFAULT_VISIBILITY_TIMEOUT",
    "DurableQueue",
]
