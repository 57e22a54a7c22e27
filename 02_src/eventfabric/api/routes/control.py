"""Control API routes: consumers, queues and the partner feed simulation."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class PurgeResponse(BaseModel):
    """Response model for a queue purge."""

    queue: str
    purged: int


# Partner feed simulation, injected by main.py
_sim_instance: Any = None


def set_sim_instance(sim: Any) -> None:
    global _sim_instance
    _sim_instance = sim


def get_sim_instance() -> Any:
    return _sim_instance


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reset", response_model=StatusResponse)
    async def reset_fabric() -> dict:
        """Drop in-flight messages and traces; rules stay attached."""
        try:
            await app.reset()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"status": "ok"}

    @router.post("/consumers/stop", response_model=StatusResponse)
    async def pause_consumers() -> dict:
        """Stop polling. Messages already hidden are redelivered after their timeout."""
        await app.fabric.stop()
        return {"status": "stopped"}

    @router.post("/consumers/start", response_model=StatusResponse)
    async def resume_consumers() -> dict:
        await app.fabric.start()
        return {"status": "running"}

    @router.post("/queues/{queue_name}/purge", response_model=PurgeResponse)
    async def purge_queue(queue_name: str) -> dict:
        """Delete every message of a queue, hidden or visible."""
        try:
            queue = app.fabric.queue(queue_name)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown queue {queue_name}")
        return {"queue": queue.name, "purged": await queue.purge()}

    @router.post("/sim/{action}", response_model=StatusResponse)
    async def control_sim(action: str) -> dict:
        """Start or stop the partner feed simulation."""
        if action not in ("start", "stop"):
            raise HTTPException(status_code=404, detail=f"Unknown SIM action {action}")
        if not _sim_instance:
            raise HTTPException(status_code=404, detail="SIM not configured")
        try:
            await getattr(_sim_instance, action)()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"status": "ok"}

    return router
