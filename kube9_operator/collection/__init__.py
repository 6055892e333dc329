"""
kube9 operator collection pipeline.

Periodically gathers anonymized facts about the cluster, validates them
against strict schemas, and either retains them locally (free tier) or ships
them to the kube9 collection service (pro tier).

Key Features:
- Typed payloads with Pydantic models, fail-fast validation with field paths
- Bounded in-memory retention with FIFO-by-insertion eviction
- Authenticated delivery with timeout, retry and backoff
- Deterministic per-type start offsets so a fleet never collects in lockstep
- Prometheus metrics and in-memory statistics for every collection type

Usage:
    from kube9_operator.collection import CollectionService
    from kube9_operator.config import CollectionConfig

    service = CollectionService(CollectionConfig.from_env(), collectors)
    await service.run_forever()
"""

from kube9_operator.collection.base import BaseCollector
from kube9_operator.collection.metrics import CollectionMetrics
from kube9_operator.collection.pipeline import SANITIZATION_RULES, CollectionPipeline
from kube9_operator.collection.scheduler import (
    CollectionScheduler,
    ScheduledTask,
    compute_offset,
)
from kube9_operator.collection.schemas import (
    SCHEMA_VERSION,
    ClusterMetadata,
    CollectionPayload,
    CollectionType,
    Provider,
    ResourceConfigurationPatterns,
    ResourceInventory,
    SanitizationMetadata,
    Tier,
    TransmissionResult,
    TransmissionStatus,
)
from kube9_operator.collection.service import CollectionService, run_collection_service
from kube9_operator.collection.stats import CollectionStats, CollectionStatsTracker
from kube9_operator.collection.storage import RetentionStore
from kube9_operator.collection.transmission import (
    FailureClass,
    TransmissionClient,
    TransmissionHTTPError,
    TransmissionTimeoutError,
    classify_failure,
)
from kube9_operator.collection.validation import (
    ValidationError,
    validate_cluster_metadata,
    validate_collection,
    validate_payload,
    validate_resource_configuration_patterns,
    validate_resource_inventory,
)

__all__ = [
    # Service
    "CollectionService",
    "run_collection_service",
    "CollectionPipeline",
    "SANITIZATION_RULES",
    "BaseCollector",
    # Scheduler
    "CollectionScheduler",
    "ScheduledTask",
    "compute_offset",
    # Storage
    "RetentionStore",
    # Transmission
    "TransmissionClient",
    "TransmissionHTTPError",
    "TransmissionTimeoutError",
    "FailureClass",
    "classify_failure",
    # Validation
    "ValidationError",
    "validate_collection",
    "validate_payload",
    "validate_cluster_metadata",
    "validate_resource_inventory",
    "validate_resource_configuration_patterns",
    # Schemas
    "SCHEMA_VERSION",
    "CollectionType",
    "CollectionPayload",
    "ClusterMetadata",
    "ResourceInventory",
    "ResourceConfigurationPatterns",
    "Provider",
    "SanitizationMetadata",
    "Tier",
    "TransmissionResult",
    "TransmissionStatus",
    # Observability
    "CollectionMetrics",
    "CollectionStats",
    "CollectionStatsTracker",
]
