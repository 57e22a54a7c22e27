"""Partner feed simulator."""

from .sim import ISim, Sim, stripe_partner_event

__all__ = ["ISim", "Sim", "stripe_partner_event"]
