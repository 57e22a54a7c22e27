"""Wiring of the Stripe event fabric: buses, queue, capabilities and rules."""

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from .config import FabricSettings
from .context import FabricContext
from .errors import ConfigurationError
from .logging_config import get_logger
from .models import (
    ACTION_PUT_EVENTS,
    ACTION_SEND_MESSAGE,
    Capability,
    EventPattern,
    Target,
)

logger = get_logger(__name__)

STRIPE_PARTNER_SOURCE_PREFIX = "aws.partner/stripe.com"
CUSTOM_STRIPE_TEST_SOURCE = "custom.stripe.test"


class TargetSpec(BaseModel):
    """A rule target in a rule file or API request."""

    type: Literal["bus", "queue"]
    name: str = Field(min_length=1)

    def to_target(self) -> Target:
        if self.type == "bus":
            return Target.bus(self.name)
        return Target.queue(self.name)


class RuleSpec(BaseModel):
    """A rule in a rule file or API request."""

    name: str | None = None
    bus: str | None = None
    pattern: dict[str, Any]
    targets: list[TargetSpec] = Field(min_length=1)

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, value: dict[str, Any]) -> dict[str, Any]:
        EventPattern.from_dict(value)
        return value

    def to_pattern(self) -> EventPattern:
        return EventPattern.from_dict(self.pattern)


def build_stripe_topology(context: FabricContext, settings: FabricSettings) -> None:
    """Create the Stripe buses, queue and routing rules on a context.

    Paths:
        partner bus  --prefix aws.partner/stripe.com--> processing bus --> queue
        internal bus --source custom.stripe.test-----> processing bus --> queue
    """
    internal_bus = context.create_bus(settings.internal_bus_name)
    processing_bus = context.create_bus(settings.processing_bus_name)
    partner_bus = context.create_bus(settings.partner_bus_name)

    queue = context.create_queue(
        settings.queue_name,
        visibility_timeout=settings.visibility_timeout,
        enqueue_timeout=settings.enqueue_timeout,
        max_receive_count=settings.max_receive_count,
    )

    to_processing_bus_role = Capability(
        name="EventBridgeToProcessingBusRole",
        actions=frozenset({ACTION_PUT_EVENTS}),
        resources=frozenset({processing_bus.name}),
    )
    to_queue_role = Capability(
        name="EventBridgeToSqsRole",
        actions=frozenset({ACTION_SEND_MESSAGE}),
        resources=frozenset({queue.name}),
    )

    partner_bus.attach_rule(
        EventPattern.source_prefix(STRIPE_PARTNER_SOURCE_PREFIX),
        [
            Target.bus(
                processing_bus.name,
                capability=to_processing_bus_role,
                target_id="ForwardToProcessingBus",
            )
        ],
        name="StripePartnerToProcessingBusRule",
    )
    internal_bus.attach_rule(
        EventPattern.sources(CUSTOM_STRIPE_TEST_SOURCE),
        [Target.bus(processing_bus.name)],
        name="InternalToProcessingBusRule",
    )
    processing_bus.attach_rule(
        EventPattern.sources(CUSTOM_STRIPE_TEST_SOURCE),
        [Target.queue(queue.name)],
        name="ProcessingBusToSqsCustomRule",
    )
    processing_bus.attach_rule(
        EventPattern.source_prefix(STRIPE_PARTNER_SOURCE_PREFIX),
        [
            Target.queue(
                queue.name,
                capability=to_queue_role,
                target_id="ForwardToStripeQueue",
            )
        ],
        name="ProcessingBusToSqsStripeRule",
    )
    logger.info(
        "Stripe topology built: buses=%s queue=%s",
        [internal_bus.name, processing_bus.name, partner_bus.name],
        queue.name,
    )


def load_rule_file(path: str | Path) -> list[RuleSpec]:
    """Read extra rules from a JSON file holding a list of rule objects."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read rule file {path}: {e}") from e

    if not isinstance(raw, list):
        raise ConfigurationError(f"Rule file {path} must contain a JSON list")

    specs = []
    for i, item in enumerate(raw):
        try:
            spec = RuleSpec.model_validate(item)
        except ValueError as e:
            raise ConfigurationError(f"Invalid rule #{i} in {path}: {e}") from e
        if not spec.bus:
            raise ConfigurationError(f"Rule #{i} in {path} does not name a bus")
        specs.append(spec)
    return specs


def apply_rule_specs(context: FabricContext, specs: list[RuleSpec]) -> None:
    """Attach rule specs to their buses."""
    for spec in specs:
        try:
            bus = context.bus(spec.bus or "")
        except KeyError as e:
            raise ConfigurationError(e.args[0]) from e
        try:
            bus.attach_rule(
                spec.to_pattern(),
                [t.to_target() for t in spec.targets],
                name=spec.name,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
