"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Union

from .errors import ConfigurationError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "event_fabric.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]

PARTNER_BUS_ARN_ENV = "STRIPE_PARTNER_EVENT_BUS_ARN"


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def partner_bus_name_from_arn(arn: str) -> str:
    """Derive the bus name from an event-bus ARN.

    ``arn:aws:events:us-east-1:123456789012:event-bus/aws.partner/stripe.com/ed_x``
    yields ``aws.partner/stripe.com/ed_x``. A value without the ``event-bus/``
    marker is taken to be the name itself.
    """
    marker = "event-bus/"
    if marker in arn:
        name = arn.split(marker, 1)[1]
    else:
        name = arn
    if not name.strip():
        raise ConfigurationError(f"Cannot derive a bus name from ARN {arn!r}")
    return name


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {raw!r}")
    return value


def _get_int(env: Mapping[str, str], key: str, default: int | None) -> int | None:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigurationError(f"{key} must be at least 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class FabricSettings:
    """Recognized configuration options of the fabric."""

    partner_event_bus_arn: str
    internal_bus_name: str = "InternalEventBus"
    processing_bus_name: str = "ProcessingEventBus"
    queue_name: str = "StripeEventQueue"
    visibility_timeout: float = 30.0
    enqueue_timeout: float = 5.0
    max_receive_count: int | None = None
    batch_size: int = 10
    poll_interval: float = 1.0
    workers: int = 1
    rules_file: str | None = None
    db_path: PathLike | None = None

    def __post_init__(self) -> None:
        if not self.partner_event_bus_arn:
            raise ConfigurationError(
                f"Environment variable {PARTNER_BUS_ARN_ENV} is not set."
            )
        names = [self.internal_bus_name, self.processing_bus_name, self.partner_bus_name]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Bus names must be unique, got {names}")
        if not 1 <= self.batch_size <= 10:
            raise ConfigurationError(
                f"Batch size must be between 1 and 10, got {self.batch_size}"
            )

    @property
    def partner_bus_name(self) -> str:
        return partner_bus_name_from_arn(self.partner_event_bus_arn)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "FabricSettings":
        """Build settings from environment variables."""
        if env is None:
            env = os.environ

        arn = env.get(PARTNER_BUS_ARN_ENV, "").strip()
        if not arn:
            raise ConfigurationError(
                f"Environment variable {PARTNER_BUS_ARN_ENV} is not set."
            )

        return cls(
            partner_event_bus_arn=arn,
            internal_bus_name=env.get("INTERNAL_EVENT_BUS_NAME") or "InternalEventBus",
            processing_bus_name=env.get("PROCESSING_EVENT_BUS_NAME")
            or "ProcessingEventBus",
            queue_name=env.get("STRIPE_EVENT_QUEUE_NAME") or "StripeEventQueue",
            visibility_timeout=_get_float(env, "QUEUE_VISIBILITY_TIMEOUT", 30.0),
            enqueue_timeout=_get_float(env, "QUEUE_ENQUEUE_TIMEOUT", 5.0),
            max_receive_count=_get_int(env, "QUEUE_MAX_RECEIVE_COUNT", None),
            batch_size=_get_int(env, "DISPATCH_BATCH_SIZE", 10),
            poll_interval=_get_float(env, "DISPATCH_POLL_INTERVAL", 1.0),
            workers=_get_int(env, "DISPATCH_WORKERS", 1),
            rules_file=env.get("FABRIC_RULES_FILE") or None,
            db_path=env.get("DATABASE_URL") or None,
        )
