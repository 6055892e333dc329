"""
Collection service that wires collectors into the scheduler and pipeline.

The process entry point builds one service with explicit instances of every
component; nothing here is a module-level singleton.
"""

import asyncio
import logging
import signal
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence

from kube9_operator.collection.base import BaseCollector
from kube9_operator.collection.metrics import CollectionMetrics
from kube9_operator.collection.pipeline import CollectionPipeline
from kube9_operator.collection.schemas import CollectionType, Tier
from kube9_operator.collection.scheduler import CollectionScheduler
from kube9_operator.collection.stats import CollectionStatsTracker
from kube9_operator.collection.storage import RetentionStore
from kube9_operator.collection.transmission import TransmissionClient

if TYPE_CHECKING:
    from kube9_operator.config import CollectionConfig

logger = logging.getLogger(__name__)

# Smallest interval each collection type may run at
MIN_INTERVAL_SECONDS: Dict[CollectionType, int] = {
    CollectionType.CLUSTER_METADATA: 3600,
    CollectionType.RESOURCE_INVENTORY: 1800,
    CollectionType.RESOURCE_CONFIGURATION_PATTERNS: 3600,
}

# Range of the deterministic start offset per collection type
OFFSET_RANGE_SECONDS: Dict[CollectionType, int] = {
    CollectionType.CLUSTER_METADATA: 3600,
    CollectionType.RESOURCE_INVENTORY: 1800,
    CollectionType.RESOURCE_CONFIGURATION_PATTERNS: 3600,
}


class CollectionService:
    """
    Main collection service that manages scheduled collection.

    This service:
    - Selects the tier from configuration
    - Registers one scheduled task per collector
    - Routes every collection through the pipeline
    - Reports status for the operator's status surface
    """

    def __init__(
        self,
        config: "CollectionConfig",
        collectors: Sequence[BaseCollector],
        *,
        retention_store: Optional[RetentionStore] = None,
        transmission_client: Optional[TransmissionClient] = None,
        stats_tracker: Optional[CollectionStatsTracker] = None,
        metrics: Optional[CollectionMetrics] = None,
        scheduler: Optional[CollectionScheduler] = None,
    ):
        """
        Initialize collection service.

        Args:
            config: Collection configuration
            collectors: One collector per collection type to schedule
            retention_store: Free tier sink (built from config if omitted)
            transmission_client: Pro tier sink (built when an API key is configured)
            stats_tracker: Statistics tracker (created if omitted)
            metrics: Prometheus metrics (created if omitted)
            scheduler: Scheduler (created if omitted)
        """
        self.config = config
        self.collectors = list(collectors)
        self.stats_tracker = stats_tracker or CollectionStatsTracker()
        self.metrics = metrics or CollectionMetrics()
        if retention_store is None:
            retention_store = RetentionStore(
                max_collections=config.max_stored_collections,
                on_size_change=self._on_store_size_change,
            )
        self.retention_store = retention_store

        if transmission_client is None and config.api_key:
            transmission_client = TransmissionClient(
                server_url=config.server_url,
                api_key=config.api_key,
                timeout_seconds=config.transmission_timeout_seconds,
            )

        self.pipeline = CollectionPipeline(
            retention_store=self.retention_store,
            transmission_client=transmission_client,
            stats_tracker=self.stats_tracker,
            metrics=self.metrics,
        )
        self.scheduler = scheduler or CollectionScheduler()

        # Service state
        self._running = False
        self._registered = False
        self._shutdown_event = asyncio.Event()

    @property
    def tier(self) -> Tier:
        return self.pipeline.tier

    @property
    def is_running(self) -> bool:
        return self._running

    def register_collectors(self) -> None:
        """Register one scheduled task per collector."""
        for collector in self.collectors:
            kind = collector.collection_type
            self.scheduler.register(
                kind.value,
                self.config.interval_for(kind),
                MIN_INTERVAL_SECONDS[kind],
                OFFSET_RANGE_SECONDS[kind],
                self._make_callback(collector),
            )
        self._registered = True
        logger.info(f"Registered {len(self.collectors)} collectors ({self.tier.value} tier)")

    def _make_callback(self, collector: BaseCollector):
        async def callback() -> None:
            await self.pipeline.run_collection(collector)

        return callback

    async def start(self) -> None:
        """Start scheduled collection."""
        if self._running:
            logger.warning("Collection service already running")
            return

        logger.info(f"Starting collection service ({self.tier.value} tier)")

        if not self._registered:
            self.register_collectors()

        self.scheduler.start()
        self._running = self.scheduler.is_running
        if not self._running:
            logger.warning("Collection service has nothing scheduled, not started")
            return
        self._shutdown_event.clear()

        logger.info("Collection service started")

    async def stop(self) -> None:
        """Stop scheduled collection. In-flight collections are left to finish."""
        if not self._running:
            return

        logger.info("Stopping collection service")

        await self.scheduler.stop()

        self._running = False
        self._shutdown_event.set()

        logger.info("Collection service stopped")

    async def run_forever(self) -> None:
        """Start, then block until SIGTERM/SIGINT or stop()."""
        await self.start()
        if not self._running:
            return
        self._register_signal_handlers()
        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()
            await self.scheduler.wait_idle()

    def _register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum: int) -> None:
            logger.info(f"Received signal {signum}, initiating shutdown")
            asyncio.create_task(self.stop())

        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                logger.debug(f"Signal handler for {signum} not supported on this platform")

    def get_status(self) -> Dict[str, Any]:
        """
        Get current collection status.

        Returns:
            Dictionary with tier, running state, statistics and stored count
        """
        return {
            "tier": self.tier.value,
            "running": self._running,
            "collectors": [c.get_stats() for c in self.collectors],
            "stats": self.stats_tracker.get_stats().model_dump(mode="json"),
            "stored_collections": self.retention_store.size(),
        }

    def _on_store_size_change(self, size: int) -> None:
        self.stats_tracker.update_stored_count(size)
        self.metrics.set_stored_count(size)


async def run_collection_service(
    config: "CollectionConfig", collectors: Sequence[BaseCollector]
) -> None:
    """
    Run the collection service until a shutdown signal arrives.

    Args:
        config: Collection configuration
        collectors: Collectors to schedule
    """
    service = CollectionService(config, collectors)
    await service.run_forever()
