"""Queue-related data models."""

from dataclasses import dataclass

from .events import Event


@dataclass
class QueueMessage:
    """An in-flight message. Hidden while ``visible_at`` is in the future."""

    message_id: str
    queue_name: str
    event: Event
    enqueued_at: float  # epoch seconds
    visible_at: float  # epoch seconds
    receive_count: int = 0

    def is_visible(self, now: float) -> bool:
        return self.visible_at <= now


@dataclass
class QueueStats:
    """Snapshot of a queue's message counts."""

    queue_name: str
    visible: int
    hidden: int

    @property
    def total(self) -> int:
        return self.visible + self.hidden
