"""Rule management API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application
from ...errors import ConfigurationError
from ...models import Rule
from ...topology import RuleSpec


class RuleResponse(BaseModel):
    """Response model for a rule."""

    name: str
    bus: str
    pattern: dict[str, Any]
    targets: list[dict[str, str]]


def _rule_to_dict(rule: Rule) -> dict:
    return {
        "name": rule.name,
        "bus": rule.bus_name,
        "pattern": rule.pattern.to_dict(),
        "targets": [
            {"type": t.kind.value, "name": t.name, "capability": t.capability.name}
            for t in rule.targets
        ],
    }


def create_rules_router(app: Application) -> APIRouter:
    """Create rules router."""
    router = APIRouter(prefix="/api", tags=["rules"])

    @router.get("/buses/{bus_name:path}/rules", response_model=list[RuleResponse])
    async def list_rules(bus_name: str) -> list[dict]:
        """List rules attached to a bus."""
        try:
            bus = app.fabric.bus(bus_name)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown bus {bus_name}")
        return [_rule_to_dict(rule) for rule in bus.rules]

    @router.post(
        "/buses/{bus_name:path}/rules", response_model=RuleResponse, status_code=201
    )
    async def attach_rule(bus_name: str, spec: RuleSpec) -> dict:
        """Attach a rule to a bus at runtime.

        The body may repeat the bus name; it must then agree with the path.
        """
        if bus_name not in app.fabric.buses:
            raise HTTPException(status_code=404, detail=f"Unknown bus {bus_name}")
        if spec.bus is not None and spec.bus != bus_name:
            raise HTTPException(
                status_code=422,
                detail=f"Body names bus {spec.bus}, path names {bus_name}",
            )

        targets = [t.to_target() for t in spec.targets]
        try:
            handle = app.fabric.add_rule(bus_name, spec.to_pattern(), targets, name=spec.name)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return _rule_to_dict(handle.rule)

    return router
