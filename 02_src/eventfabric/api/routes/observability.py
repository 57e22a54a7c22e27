"""Observability API routes: trace events and queue depth."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import Application
from ...queues import DurableQueue


class TraceEventResponse(BaseModel):
    """Response model for trace event."""

    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime


class QueueStatsResponse(BaseModel):
    """Visible and in-flight message counts of a queue."""

    queue: str
    visible: int
    hidden: int
    visibility_timeout: float
    dead_letter_queue: str | None = None


async def _queue_stats(queue: DurableQueue) -> dict:
    stats = await queue.stats()
    dlq = queue.dead_letter_queue
    return {
        "queue": stats.queue_name,
        "visible": stats.visible,
        "hidden": stats.hidden,
        "visibility_timeout": queue.visibility_timeout,
        "dead_letter_queue": dlq.name if dlq else None,
    }


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: datetime | None = Query(None, description="Only traces after this ISO timestamp"),
        limit: int = Query(100, ge=1, le=1000),
        event_type: list[str] | None = Query(None, description="Trace types, repeatable"),
        actor: str | None = Query(None, description="e.g. bus:ProcessingEventBus or router"),
        event_id: str | None = Query(None, description="Follow one event across hops"),
    ) -> list[dict]:
        """Trace events, newest first."""
        try:
            events = await app.storage.get_trace_events(
                after=after,
                event_types=event_type,
                actor=actor,
                event_id=event_id,
                limit=limit,
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return [
            {
                "id": e.id,
                "event_type": e.event_type,
                "actor": e.actor,
                "data": e.data,
                "timestamp": e.timestamp,
            }
            for e in events
        ]

    @router.get("/queues", response_model=list[QueueStatsResponse])
    async def list_queues() -> list[dict]:
        return [await _queue_stats(q) for q in app.fabric.queues.values()]

    @router.get("/queues/{queue_name}/stats", response_model=QueueStatsResponse)
    async def get_queue_stats(queue_name: str) -> dict:
        try:
            queue = app.fabric.queue(queue_name)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown queue {queue_name}")
        return await _queue_stats(queue)

    return router
