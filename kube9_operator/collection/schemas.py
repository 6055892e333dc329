"""
Type-safe collection schemas for the kube9 operator.

These models define every payload shape that may leave the operator.
Python attributes are snake_case; the wire form uses the camelCase keys the
kube9 collection service expects (see ``CollectionPayload.to_wire``).

Instances are only ever built by the validators in
``kube9_operator.collection.validation``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# ENUMS - No magic strings
# ============================================================================


class CollectionType(str, Enum):
    """Closed set of payload kinds the pipeline knows how to validate."""

    CLUSTER_METADATA = "cluster-metadata"
    RESOURCE_INVENTORY = "resource-inventory"
    RESOURCE_CONFIGURATION_PATTERNS = "resource-configuration-patterns"


class Provider(str, Enum):
    """Cluster hosting provider as detected from node labels."""

    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    ON_PREMISE = "on-premise"
    OTHER = "other"
    UNKNOWN = "unknown"


class Tier(str, Enum):
    """Operator tier, selected by presence of a transmission credential."""

    FREE = "free"
    PRO = "pro"


class TransmissionStatus(str, Enum):
    """Final outcome of one transmit() call."""

    DELIVERED = "delivered"
    REJECTED = "rejected"  # Terminal client error, no retry
    FAILED = "failed"  # Retryable failures until attempts ran out


SCHEMA_VERSION = "v1.0.0"


class WireModel(BaseModel):
    """Base for payload models: camelCase on the wire, unknown keys dropped."""

    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ============================================================================
# CLUSTER METADATA
# ============================================================================


class ClusterMetadata(WireModel):
    """Cluster-level facts collected once a day."""

    timestamp: str
    collection_id: str = Field(pattern=r"^coll_[a-z0-9]{32}$")
    cluster_id: str = Field(pattern=r"^cls_[a-z0-9]{32}$")
    kubernetes_version: str = Field(pattern=r"^v?[0-9]+\.[0-9]+\.[0-9]+$")
    node_count: int = Field(ge=1, le=10000)
    provider: Optional[Provider] = None
    region: Optional[str] = Field(None, max_length=50)
    zone: Optional[str] = Field(None, max_length=50)


# ============================================================================
# RESOURCE INVENTORY
# ============================================================================


class NamespaceSummary(WireModel):
    count: int = Field(ge=0)
    list: List[str] = Field(default_factory=list)


class PodCounts(WireModel):
    total: int = Field(ge=0)
    by_namespace: Dict[str, int] = Field(default_factory=dict)


class ResourceTotal(WireModel):
    total: int = Field(ge=0)


class ServiceTypeCounts(WireModel):
    """Service counts keyed by Kubernetes service type; absent types are omitted."""

    cluster_ip: Optional[int] = Field(None, ge=0, alias="ClusterIP")
    node_port: Optional[int] = Field(None, ge=0, alias="NodePort")
    load_balancer: Optional[int] = Field(None, ge=0, alias="LoadBalancer")
    external_name: Optional[int] = Field(None, ge=0, alias="ExternalName")


class ServiceCounts(WireModel):
    total: int = Field(ge=0)
    by_type: ServiceTypeCounts = Field(default_factory=ServiceTypeCounts)


class ResourceCounts(WireModel):
    pods: PodCounts
    deployments: ResourceTotal
    stateful_sets: ResourceTotal
    replica_sets: ResourceTotal
    services: ServiceCounts


class ResourceInventory(WireModel):
    """Namespace and workload counts; namespaces appear only as hashes."""

    timestamp: str
    collection_id: str = Field(pattern=r"^coll_[a-z0-9]{32}$")
    cluster_id: str = Field(pattern=r"^cls_[a-z0-9]{32}$")
    namespaces: NamespaceSummary
    resources: ResourceCounts


# ============================================================================
# RESOURCE CONFIGURATION PATTERNS - aggregated counters only
# ============================================================================


class TriStateCounts(WireModel):
    """Counts of a boolean setting that may also be left unset."""

    true: int = Field(0, ge=0)
    false: int = Field(0, ge=0)
    not_set: int = Field(0, ge=0)


class SetCounts(WireModel):
    set: int = Field(0, ge=0)
    not_set: int = Field(0, ge=0)


class ContainerResourceSettings(WireModel):
    cpu_requests: List[Optional[str]] = Field(default_factory=list)
    cpu_limits: List[Optional[str]] = Field(default_factory=list)
    memory_requests: List[Optional[str]] = Field(default_factory=list)
    memory_limits: List[Optional[str]] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)


class ResourceLimitsRequests(WireModel):
    containers: ContainerResourceSettings = Field(default_factory=ContainerResourceSettings)


class ReplicaCounts(WireModel):
    deployments: List[int] = Field(default_factory=list)
    stateful_sets: List[int] = Field(default_factory=list)
    daemon_set_count: int = Field(0, ge=0)


class ImagePullPolicyCounts(WireModel):
    always: int = Field(0, ge=0, alias="Always")
    if_not_present: int = Field(0, ge=0, alias="IfNotPresent")
    never: int = Field(0, ge=0, alias="Never")
    not_set: int = Field(0, ge=0)


class ImagePullPolicies(WireModel):
    policies: ImagePullPolicyCounts = Field(default_factory=ImagePullPolicyCounts)
    total_containers: int = Field(0, ge=0)


class PodSecuritySettings(WireModel):
    run_as_non_root: TriStateCounts = Field(default_factory=TriStateCounts)
    fs_group: SetCounts = Field(default_factory=SetCounts)


class Capabilities(WireModel):
    added: List[str] = Field(default_factory=list)
    dropped: List[str] = Field(default_factory=list)


class ContainerSecuritySettings(WireModel):
    run_as_non_root: TriStateCounts = Field(default_factory=TriStateCounts)
    read_only_root_filesystem: TriStateCounts = Field(default_factory=TriStateCounts)
    allow_privilege_escalation: TriStateCounts = Field(default_factory=TriStateCounts)
    capabilities: Capabilities = Field(default_factory=Capabilities)


class SecurityContexts(WireModel):
    pod_level: PodSecuritySettings = Field(default_factory=PodSecuritySettings)
    container_level: ContainerSecuritySettings = Field(default_factory=ContainerSecuritySettings)
    total_pods: int = Field(0, ge=0)
    total_containers: int = Field(0, ge=0)


class PerKindCounts(WireModel):
    pods: List[int] = Field(default_factory=list)
    deployments: List[int] = Field(default_factory=list)
    services: List[int] = Field(default_factory=list)


class LabelsAnnotations(WireModel):
    label_counts: PerKindCounts = Field(default_factory=PerKindCounts)
    annotation_counts: PerKindCounts = Field(default_factory=PerKindCounts)
    common_label_keys: List[str] = Field(default_factory=list)


class VolumeTypeCounts(WireModel):
    config_map: int = Field(0, ge=0)
    secret: int = Field(0, ge=0)
    empty_dir: int = Field(0, ge=0)
    persistent_volume_claim: int = Field(0, ge=0)
    host_path: int = Field(0, ge=0)
    downward_api: int = Field(0, ge=0, alias="downwardAPI")
    projected: int = Field(0, ge=0)
    other: int = Field(0, ge=0)


class Volumes(WireModel):
    volume_types: VolumeTypeCounts = Field(default_factory=VolumeTypeCounts)
    volumes_per_pod: List[int] = Field(default_factory=list)
    volume_mounts_per_container: List[int] = Field(default_factory=list)
    total_pods: int = Field(0, ge=0)


class ServiceTypeTotals(WireModel):
    cluster_ip: int = Field(0, ge=0, alias="ClusterIP")
    node_port: int = Field(0, ge=0, alias="NodePort")
    load_balancer: int = Field(0, ge=0, alias="LoadBalancer")
    external_name: int = Field(0, ge=0, alias="ExternalName")


class ServicePatterns(WireModel):
    service_types: ServiceTypeTotals = Field(default_factory=ServiceTypeTotals)
    ports_per_service: List[int] = Field(default_factory=list)
    total_services: int = Field(0, ge=0)


class ProbeTypeCounts(WireModel):
    http: int = Field(0, ge=0)
    tcp: int = Field(0, ge=0)
    exec: int = Field(0, ge=0)
    grpc: int = Field(0, ge=0)


class ProbeConfig(WireModel):
    configured: int = Field(0, ge=0)
    not_configured: int = Field(0, ge=0)
    probe_types: ProbeTypeCounts = Field(default_factory=ProbeTypeCounts)
    initial_delay_seconds: List[int] = Field(default_factory=list)
    timeout_seconds: List[int] = Field(default_factory=list)
    period_seconds: List[int] = Field(default_factory=list)


class Probes(WireModel):
    liveness_probes: ProbeConfig = Field(default_factory=ProbeConfig)
    readiness_probes: ProbeConfig = Field(default_factory=ProbeConfig)
    startup_probes: ProbeConfig = Field(default_factory=ProbeConfig)
    total_containers: int = Field(0, ge=0)


class ResourceConfigurationPatterns(WireModel):
    """Configuration-pattern aggregates over every workload in the cluster."""

    timestamp: str
    collection_id: str = Field(pattern=r"^coll_[a-z0-9]{32}$")
    cluster_id: str = Field(pattern=r"^cls_[a-z0-9]{32}$")
    resource_limits_requests: ResourceLimitsRequests
    replica_counts: ReplicaCounts
    image_pull_policies: ImagePullPolicies
    security_contexts: SecurityContexts
    labels_annotations: LabelsAnnotations
    volumes: Volumes
    services: ServicePatterns
    probes: Probes


CollectionBody = Union[ClusterMetadata, ResourceInventory, ResourceConfigurationPatterns]

BODY_MODELS = {
    CollectionType.CLUSTER_METADATA: ClusterMetadata,
    CollectionType.RESOURCE_INVENTORY: ResourceInventory,
    CollectionType.RESOURCE_CONFIGURATION_PATTERNS: ResourceConfigurationPatterns,
}


# ============================================================================
# PAYLOAD ENVELOPE
# ============================================================================


class SanitizationMetadata(WireModel):
    """Which anonymization rules were applied to a payload, and when."""

    rules_applied: List[str] = Field(min_length=1)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CollectionPayload(BaseModel):
    """
    The unit moved through the pipeline.

    Only validators build payload bodies, so holding a CollectionPayload means
    the data already passed validation.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True)

    schema_version: str = Field(
        SCHEMA_VERSION, alias="version", pattern=r"^v[0-9]+\.[0-9]+\.[0-9]+$"
    )
    collection_type: CollectionType = Field(alias="type")
    body: CollectionBody = Field(alias="data")
    sanitization: SanitizationMetadata

    @model_validator(mode="after")
    def _body_matches_type(self) -> "CollectionPayload":
        expected = BODY_MODELS[self.collection_type]
        if not isinstance(self.body, expected):
            raise ValueError(
                f"{self.collection_type.value} payload requires {expected.__name__} data, "
                f"got {type(self.body).__name__}"
            )
        return self

    @property
    def collection_id(self) -> str:
        return self.body.collection_id

    @property
    def cluster_id(self) -> str:
        return self.body.cluster_id

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the JSON-ready form POSTed to the collection service."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# TRANSMISSION OUTCOME
# ============================================================================


class TransmissionResult(BaseModel):
    """Explicit outcome of a transmit() call; callers never need try/except."""

    status: TransmissionStatus
    collection_id: str
    attempts: int = Field(ge=0)
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status == TransmissionStatus.DELIVERED
