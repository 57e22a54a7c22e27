"""Processing module."""

from .stripe_processor import IEventProcessor, StripeEventProcessor

__all__ = ["IEventProcessor", "StripeEventProcessor"]
