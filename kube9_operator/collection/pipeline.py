"""
Collection pipeline: validate, wrap and route collector output.

The tier is decided by whether a transmission client is configured. Pro tier
payloads go to the transmission client, free tier payloads to the retention
store. A payload never goes to both, and a failed transmission is not
retained locally; the next scheduled cycle produces fresh data.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

from kube9_operator.collection.base import BaseCollector
from kube9_operator.collection.metrics import CollectionMetrics
from kube9_operator.collection.schemas import (
    SCHEMA_VERSION,
    CollectionPayload,
    CollectionType,
    SanitizationMetadata,
    Tier,
    TransmissionResult,
)
from kube9_operator.collection.stats import CollectionStatsTracker
from kube9_operator.collection.storage import RetentionStore
from kube9_operator.collection.transmission import TransmissionClient
from kube9_operator.collection.validation import ValidationError, validate_collection

logger = logging.getLogger(__name__)

SANITIZATION_RULES: Dict[CollectionType, List[str]] = {
    CollectionType.CLUSTER_METADATA: ["no-resource-names", "hashed-cluster-id"],
    CollectionType.RESOURCE_INVENTORY: [
        "hashed-namespaces",
        "no-resource-names",
        "hashed-cluster-id",
    ],
    CollectionType.RESOURCE_CONFIGURATION_PATTERNS: [
        "aggregated-counts-only",
        "no-resource-names",
        "hashed-cluster-id",
    ],
}


class CollectionPipeline:
    """
    Tier dispatch for validated collections.

    process() and run_collection() never raise for runtime failures: bad
    collector output, collector errors and delivery problems are logged and
    recorded, and the caller moves on.
    """

    def __init__(
        self,
        retention_store: RetentionStore,
        transmission_client: Optional[TransmissionClient] = None,
        stats_tracker: Optional[CollectionStatsTracker] = None,
        metrics: Optional[CollectionMetrics] = None,
    ):
        """
        Initialize pipeline.

        Args:
            retention_store: Free tier sink
            transmission_client: Pro tier sink; None selects the free tier
            stats_tracker: Optional success/failure tracker
            metrics: Optional Prometheus metrics
        """
        self.retention_store = retention_store
        self.transmission_client = transmission_client
        self.stats_tracker = stats_tracker
        self.metrics = metrics

    @property
    def tier(self) -> Tier:
        return Tier.PRO if self.transmission_client is not None else Tier.FREE

    async def process(
        self, collection_type: Union[CollectionType, str], raw: Any
    ) -> Optional[CollectionPayload]:
        """
        Validate raw collector output and hand it to exactly one sink.

        Args:
            collection_type: Kind of the raw body
            raw: Unvalidated collector output

        Returns:
            The routed payload, or None if the body was rejected
        """
        label = collection_type.value if isinstance(collection_type, CollectionType) else str(collection_type)
        try:
            body = validate_collection(collection_type, raw)
        except ValidationError as e:
            logger.error(f"Dropping {label} collection: {e}", extra={"collection_type": label})
            return None

        kind = CollectionType(collection_type)
        payload = CollectionPayload(
            schema_version=SCHEMA_VERSION,
            collection_type=kind,
            body=body,
            sanitization=SanitizationMetadata(rules_applied=list(SANITIZATION_RULES[kind])),
        )
        log_extra = {"collection_type": kind.value, "collection_id": payload.collection_id}

        if self.transmission_client is not None:
            logger.info(f"Transmitting {kind.value} collection {payload.collection_id}", extra=log_extra)
            result = await self.transmission_client.transmit(payload)
            self._record_transmission(kind, result)
        else:
            logger.info(f"Storing {kind.value} collection {payload.collection_id} locally", extra=log_extra)
            await self.retention_store.store(payload)

        return payload

    async def run_collection(self, collector: BaseCollector) -> Optional[CollectionPayload]:
        """
        Run one full collection cycle for a collector.

        Suitable as a scheduler callback. The cycle counts as a success once
        the payload reached its sink; delivery outcome is tracked separately.
        """
        kind = collector.collection_type
        start_time = time.monotonic()
        payload: Optional[CollectionPayload] = None

        try:
            raw = await collector.collect_with_timeout()
            payload = await self.process(kind, raw)
        except Exception as e:
            logger.error(
                f"{kind.value} collection failed: {e}",
                exc_info=True,
                extra={"collection_type": kind.value},
            )

        duration = time.monotonic() - start_time
        status = "success" if payload is not None else "failed"
        if self.metrics:
            self.metrics.record_collection(kind.value, status, duration)
        if self.stats_tracker:
            if payload is not None:
                self.stats_tracker.record_success(kind.value)
            else:
                self.stats_tracker.record_failure(kind.value)

        logger.debug(
            f"{kind.value} collection cycle finished: {status}",
            extra={"collection_type": kind.value, "duration_ms": round(duration * 1000, 1)},
        )
        return payload

    def _record_transmission(self, kind: CollectionType, result: TransmissionResult) -> None:
        if self.metrics:
            self.metrics.record_transmission(kind.value, result.status.value)
        if not result.delivered:
            logger.warning(
                f"{kind.value} collection {result.collection_id} not delivered "
                f"({result.status.value} after {result.attempts} attempts), dropping it",
                extra={"collection_type": kind.value, "collection_id": result.collection_id},
            )
