"""Error taxonomy of the routing fabric."""

from enum import Enum


class FabricError(Exception):
    """Base class for all fabric errors."""


class ConfigurationError(FabricError):
    """Fatal startup error: a required reference is missing or invalid."""


class RoutingFailure(str, Enum):
    """Why a forward to a target failed."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    UNREACHABLE = "unreachable"


class RoutingError(FabricError):
    """A forward to a bus or queue target failed. The event is dropped at that hop."""

    def __init__(self, target: str, reason: RoutingFailure, message: str = ""):
        self.target = target
        self.reason = reason
        self.message = message or f"{reason.value}: {target}"
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "reason": self.reason.value,
            "message": self.message,
        }


class QueueUnavailableError(FabricError):
    """The queue could not accept a message within its enqueue timeout."""


class HandlerError(FabricError):
    """Raised by a message handler to signal failure; the message will be redelivered."""
