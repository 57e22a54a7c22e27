"""Router module."""

from .router import IBus, IQueue, IRouter, Router

__all__ = ["IBus", "IQueue", "IRouter", "Router"]
