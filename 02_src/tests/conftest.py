"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

PARTNER_ARN = (
    "arn:aws:events:us-east-1:123456789012:"
    "event-bus/aws.partner/stripe.com/ed_test_61"
)
PARTNER_BUS = "aws.partner/stripe.com/ed_test_61"


class FakeClock:
    """Manually advanced clock for visibility-timeout tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from eventfabric.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def tracker(storage):
    """Create Tracker with storage."""
    from eventfabric.tracker import Tracker

    return Tracker(storage=storage)


@pytest.fixture
def clock():
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def context(storage, tracker, clock):
    """Create an empty fabric context on the fake clock."""
    from eventfabric.context import FabricContext

    return FabricContext(storage, tracker=tracker, clock=clock)


@pytest.fixture
def queue(context):
    """Create a queue with the default 30s visibility timeout."""
    return context.create_queue("TestQueue", visibility_timeout=30.0)


@pytest.fixture
def settings():
    """Create settings for an in-memory fabric with fast polling."""
    from eventfabric.config import FabricSettings

    return FabricSettings(
        partner_event_bus_arn=PARTNER_ARN,
        db_path=":memory:",
        poll_interval=0.01,
    )


@pytest.fixture
def make_event():
    """Factory for events."""
    from eventfabric.models import Event

    def _make(source: str = "custom.stripe.test", detail: dict | None = None, **kw):
        return Event.create(
            source=source,
            detail_type=kw.get("detail_type", "test"),
            detail=detail if detail is not None else {"id": 1},
        )

    return _make
