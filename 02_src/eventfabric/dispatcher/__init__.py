"""Dispatcher module."""

from .dispatcher import ConsumerDispatcher, DispatchStats, EventHandler, IDispatchQueue

__all__ = ["ConsumerDispatcher", "DispatchStats", "EventHandler", "IDispatchQueue"]
