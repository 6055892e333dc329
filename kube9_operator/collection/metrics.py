"""
Prometheus metrics for collection health.

Each CollectionMetrics instance owns its own registry, so separate pipelines
(and tests) never share counters.
"""

import logging
import time
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

DURATION_BUCKETS = [0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120]


class CollectionMetrics:
    """Counters, durations and gauges for the collection pipeline."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.collection_total = Counter(
            "kube9_operator_collection_total",
            "Total number of collection attempts by type and status",
            ["type", "status"],
            registry=self.registry,
        )
        self.collection_duration_seconds = Histogram(
            "kube9_operator_collection_duration_seconds",
            "Duration of collection operations in seconds",
            ["type"],
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
        self.collection_last_success = Gauge(
            "kube9_operator_collection_last_success",
            "Unix timestamp of last successful collection by type",
            ["type"],
            registry=self.registry,
        )
        self.collections_stored = Gauge(
            "kube9_operator_collections_stored",
            "Number of collections currently held in local retention",
            registry=self.registry,
        )
        self.transmission_total = Counter(
            "kube9_operator_transmission_total",
            "Total number of transmit calls by type and outcome",
            ["type", "status"],
            registry=self.registry,
        )

    def record_collection(self, collection_type: str, status: str, duration_seconds: float) -> None:
        """Record one collection attempt. Never raises."""
        try:
            self.collection_total.labels(type=collection_type, status=status).inc()
            self.collection_duration_seconds.labels(type=collection_type).observe(duration_seconds)
            if status == "success":
                self.collection_last_success.labels(type=collection_type).set(int(time.time()))
            logger.debug(
                f"Recorded collection metrics for {collection_type}: "
                f"{status} in {duration_seconds:.3f}s"
            )
        except Exception as e:
            logger.error(f"Failed to record collection metrics for {collection_type}: {e}")

    def record_transmission(self, collection_type: str, status: str) -> None:
        try:
            self.transmission_total.labels(type=collection_type, status=status).inc()
        except Exception as e:
            logger.error(f"Failed to record transmission metrics for {collection_type}: {e}")

    def set_stored_count(self, count: int) -> None:
        try:
            self.collections_stored.set(count)
        except Exception as e:
            logger.error(f"Failed to record stored collection count: {e}")

    def render(self) -> bytes:
        """Prometheus text exposition of every metric in this registry."""
        return generate_latest(self.registry)
