"""
Aggregated collection statistics for operator status reporting.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CollectionTypeStats(BaseModel):
    """Counters for one collection type."""

    success_count: int = Field(0, ge=0)
    failure_count: int = Field(0, ge=0)
    last_success_time: Optional[datetime] = None
    last_failure_time: Optional[datetime] = None


class CollectionStats(BaseModel):
    """Snapshot of collection statistics across all types."""

    total_success_count: int = Field(ge=0)
    total_failure_count: int = Field(ge=0)
    collections_stored_count: int = Field(ge=0)
    last_success_time: Optional[datetime] = None
    by_type: Dict[str, CollectionTypeStats] = Field(default_factory=dict)


class CollectionStatsTracker:
    """Keeps per-type success/failure counts and the locally stored count."""

    def __init__(self) -> None:
        self._stats: Dict[str, CollectionTypeStats] = {}
        self._stored_count = 0

    def record_success(self, collection_type: str) -> None:
        stats = self._get_or_create(collection_type)
        stats.success_count += 1
        stats.last_success_time = datetime.now(timezone.utc)
        logger.debug(f"Recorded success for {collection_type} (total {stats.success_count})")

    def record_failure(self, collection_type: str) -> None:
        stats = self._get_or_create(collection_type)
        stats.failure_count += 1
        stats.last_failure_time = datetime.now(timezone.utc)
        logger.debug(f"Recorded failure for {collection_type} (total {stats.failure_count})")

    def update_stored_count(self, count: int) -> None:
        self._stored_count = count

    def get_stats(self) -> CollectionStats:
        """Aggregate counters into a snapshot; the snapshot is independent of the tracker."""
        last_success: Optional[datetime] = None
        for stats in self._stats.values():
            if stats.last_success_time and (
                last_success is None or stats.last_success_time > last_success
            ):
                last_success = stats.last_success_time

        return CollectionStats(
            total_success_count=sum(s.success_count for s in self._stats.values()),
            total_failure_count=sum(s.failure_count for s in self._stats.values()),
            collections_stored_count=self._stored_count,
            last_success_time=last_success,
            by_type={t: s.model_copy() for t, s in self._stats.items()},
        )

    def reset(self) -> None:
        self._stats.clear()
        self._stored_count = 0
        logger.info("Collection statistics reset")

    def _get_or_create(self, collection_type: str) -> CollectionTypeStats:
        if collection_type not in self._stats:
            self._stats[collection_type] = CollectionTypeStats()
        return self._stats[collection_type]
