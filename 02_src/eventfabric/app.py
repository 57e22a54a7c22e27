"""Application bootstrap and lifecycle management."""

import time
from typing import Protocol

from .config import FabricSettings
from .context import FabricContext
from .dispatcher import EventHandler
from .event_bus import EventBus
from .logging_config import get_logger
from .processing import StripeEventProcessor
from .queues import Clock
from .storage import IStorage, Storage
from .topology import RuleSpec, apply_rule_specs, build_stripe_topology, load_rule_file
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Drop in-flight messages and traces."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: FabricSettings | None = None,
        handler: EventHandler | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings
        self._handler = handler
        self._clock = clock

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._fabric: FabricContext | None = None
        self._processor: StripeEventProcessor | None = None

    async def start(self) -> None:
        """Initialize components in dependency order.

        Raises ConfigurationError before touching any resource when a required
        setting (the partner event-bus ARN) is missing. A failure after storage
        is opened closes it again before the error propagates.
        """
        logger.info("Starting application")

        # 0. Settings (fatal if the partner bus reference is missing)
        if self._settings is None:
            self._settings = FabricSettings.from_env()
        settings = self._settings
        extra_rules = load_rule_file(settings.rules_file) if settings.rules_file else []

        try:
            await self._start_components(settings, extra_rules)
        except BaseException:
            logger.error("Startup failed, releasing resources", exc_info=True)
            await self.stop()
            self._fabric = None
            self._tracker = None
            self._processor = None
            self._storage = None
            raise
        logger.info("All components initialized successfully")

    async def _start_components(
        self, settings: FabricSettings, extra_rules: list[RuleSpec]
    ) -> None:
        # 1. Storage (no dependencies)
        self._storage = Storage(settings.db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Fabric: buses, queue, rules (depends on Storage + Tracker)
        self._fabric = FabricContext(
            self._storage, tracker=self._tracker, clock=self._clock or time.time
        )
        build_stripe_topology(self._fabric, settings)
        apply_rule_specs(self._fabric, extra_rules)
        self._fabric.validate()
        logger.info("Fabric topology initialized")

        # 4. Consumer (depends on the queue)
        handler = self._handler
        if handler is None:
            self._processor = StripeEventProcessor()
            handler = self._processor.handle
        self._fabric.register_handler(
            settings.queue_name,
            handler,
            batch_size=settings.batch_size,
            poll_interval=settings.poll_interval,
            workers=settings.workers,
        )
        await self._fabric.start()

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._fabric:
            await self._fabric.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Drop in-flight messages and traces; rules and buses stay in place."""
        # 1. Pause consumers
        if self._fabric:
            await self._fabric.stop()

        # 2. Clear storage
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        # 3. Resume consumers
        if self._fabric:
            await self._fabric.start()
            logger.info("Reset complete")

    @property
    def settings(self) -> FabricSettings:
        """Get settings in effect."""
        if not self._settings:
            raise RuntimeError("Application not started")
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def fabric(self) -> FabricContext:
        """Get the fabric context."""
        if not self._fabric:
            raise RuntimeError("Application not started")
        return self._fabric

    @property
    def partner_bus(self) -> EventBus:
        """Get the bus fed by the partner event source."""
        return self.fabric.bus(self.settings.partner_bus_name)

    @property
    def tracker(self) -> ITracker:
        """Get tracker instance."""
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker
