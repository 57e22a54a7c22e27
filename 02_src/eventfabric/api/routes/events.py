"""Event ingress API routes."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...event_bus import EventBus
from ...models import Event


class PublishRequest(BaseModel):
    """Request model for publishing an event."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(min_length=1)
    detail_type: str = Field("", alias="detail-type")
    detail: dict[str, Any] = Field(default_factory=dict)


class PublishResponse(BaseModel):
    """Response model for a publish: routing errors are reported, no-match is not."""

    id: str
    bus: str
    matched_rules: list[str]
    deliveries: list[dict[str, Any]]
    errors: list[dict[str, Any]]


def create_events_router(app: Application) -> APIRouter:
    """Create event ingress router."""
    router = APIRouter(prefix="/api", tags=["events"])

    async def _publish(bus: EventBus, request: PublishRequest) -> dict:
        event = Event.create(
            source=request.source,
            detail_type=request.detail_type,
            detail=request.detail,
        )
        try:
            result = await bus.publish(event)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        data = result.to_dict()
        return {
            "id": event.id,
            "bus": data["bus"],
            "matched_rules": data["matched_rules"],
            "deliveries": data["deliveries"],
            "errors": data["errors"],
        }

    @router.post("/buses/{bus_name:path}/events", response_model=PublishResponse)
    async def publish_event(bus_name: str, request: PublishRequest) -> dict:
        """Publish an event on a named bus (internal publishers)."""
        try:
            bus = app.fabric.bus(bus_name)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown bus {bus_name}")
        return await _publish(bus, request)

    @router.post("/partner/events", response_model=PublishResponse)
    async def publish_partner_event(request: PublishRequest) -> dict:
        """Ingress for the partner feed: publishes on the partner bus."""
        return await _publish(app.partner_bus, request)

    return router
