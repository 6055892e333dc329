"""
Base class for collectors feeding the collection pipeline.

Collectors walk the Kubernetes API and hand back a raw, not yet validated
body for one collection type. The pipeline takes it from there.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional
from datetime import datetime, timezone
import asyncio
import logging

from kube9_operator.collection.schemas import CollectionType

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """
    Abstract base class for all collectors.

    Subclasses implement collect(); callers use collect_with_timeout(), which
    adds timeout enforcement and bookkeeping.
    """

    def __init__(self, collection_type: CollectionType, timeout_seconds: float = 60):
        """
        Initialize base collector.

        Args:
            collection_type: Payload kind this collector produces
            timeout_seconds: Maximum time allowed for one collection
        """
        self.collection_type = collection_type
        self.timeout_seconds = timeout_seconds
        self._last_collection_time: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._collection_count = 0
        self._error_count = 0

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def collect(self) -> Mapping[str, Any]:
        """
        Collect one raw body from the cluster.

        Must be implemented by subclasses.

        Returns:
            Raw body for this collector's collection type (validated later)
        """
        pass

    async def collect_with_timeout(self) -> Mapping[str, Any]:
        """
        Collect with timeout enforcement.

        Unlike the pipeline, a collector does not absorb its failures: they are
        counted here and re-raised so the caller can record them.

        Raises:
            asyncio.TimeoutError: Collection took longer than timeout_seconds
        """
        self._collection_count += 1
        start_time = datetime.now(timezone.utc)
        try:
            result = await asyncio.wait_for(self.collect(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self._error_count += 1
            self._last_error = f"Collection timeout after {self.timeout_seconds}s"
            logger.error(f"{self.name}: {self._last_error}")
            raise
        except Exception as e:
            self._error_count += 1
            self._last_error = str(e)
            logger.error(f"{self.name} collection failed: {e}")
            raise

        self._last_collection_time = datetime.now(timezone.utc)
        logger.debug(
            f"{self.name} collected {self.collection_type.value} in "
            f"{(self._last_collection_time - start_time).total_seconds():.2f}s"
        )
        return result

    def get_stats(self) -> dict:
        """
        Get collector statistics.

        Returns:
            Dictionary with collection stats
        """
        return {
            "name": self.name,
            "collection_type": self.collection_type.value,
            "collections": self._collection_count,
            "errors": self._error_count,
            "error_rate": self._error_count / max(1, self._collection_count),
            "last_collection": self._last_collection_time.isoformat()
            if self._last_collection_time
            else None,
            "last_error": self._last_error,
        }

    def reset_stats(self) -> None:
        """Reset collector statistics."""
        self._collection_count = 0
        self._error_count = 0
        self._last_error = None
