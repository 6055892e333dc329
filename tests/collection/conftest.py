"""
Fixtures shared by the collection pipeline tests.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from kube9_operator.collection.schemas import (
    CollectionPayload,
    CollectionType,
    SanitizationMetadata,
)
from kube9_operator.collection.validation import validate_collection

CLUSTER_ID = "cls_" + "a" * 32
NAMESPACE_A = "namespace-0123456789ab"
NAMESPACE_B = "namespace-ba9876543210"


def _collection_id(n: int) -> str:
    """Deterministic, valid collection id for index n."""
    return f"coll_{n:032d}"


CLUSTER_METADATA: Dict[str, Any] = {
    "timestamp": "2025-01-15T10:30:00.000Z",
    "collectionId": _collection_id(1),
    "clusterId": CLUSTER_ID,
    "kubernetesVersion": "v1.28.3",
    "nodeCount": 3,
    "provider": "aws",
    "region": "us-east-1",
    "zone": "us-east-1a",
}

RESOURCE_INVENTORY: Dict[str, Any] = {
    "timestamp": "2025-01-15T10:30:00.000Z",
    "collectionId": _collection_id(2),
    "clusterId": CLUSTER_ID,
    "namespaces": {"count": 2, "list": [NAMESPACE_A, NAMESPACE_B]},
    "resources": {
        "pods": {"total": 12, "byNamespace": {NAMESPACE_A: 8, NAMESPACE_B: 4}},
        "deployments": {"total": 4},
        "statefulSets": {"total": 1},
        "replicaSets": {"total": 6},
        "services": {"total": 3, "byType": {"ClusterIP": 2, "LoadBalancer": 1}},
    },
}


def _probe(configured: int) -> Dict[str, Any]:
    return {
        "configured": configured,
        "notConfigured": 1,
        "probeTypes": {"http": configured, "tcp": 0, "exec": 0, "grpc": 0},
        "initialDelaySeconds": [10] * configured,
        "timeoutSeconds": [1] * configured,
        "periodSeconds": [10] * configured,
    }


RESOURCE_CONFIGURATION_PATTERNS: Dict[str, Any] = {
    "timestamp": "2025-01-15T10:30:00.000Z",
    "collectionId": _collection_id(3),
    "clusterId": CLUSTER_ID,
    "resourceLimitsRequests": {
        "containers": {
            "cpuRequests": ["100m", None],
            "cpuLimits": ["500m", None],
            "memoryRequests": ["128Mi", "64Mi"],
            "memoryLimits": [None, None],
            "totalCount": 2,
        }
    },
    "replicaCounts": {"deployments": [1, 3], "statefulSets": [2], "daemonSetCount": 1},
    "imagePullPolicies": {
        "policies": {"Always": 1, "IfNotPresent": 1, "Never": 0, "notSet": 0},
        "totalContainers": 2,
    },
    "securityContexts": {
        "podLevel": {
            "runAsNonRoot": {"true": 1, "false": 0, "notSet": 1},
            "fsGroup": {"set": 1, "notSet": 1},
        },
        "containerLevel": {
            "runAsNonRoot": {"true": 1, "false": 0, "notSet": 1},
            "readOnlyRootFilesystem": {"true": 0, "false": 1, "notSet": 1},
            "allowPrivilegeEscalation": {"true": 0, "false": 2, "notSet": 0},
            "capabilities": {"added": ["NET_ADMIN"], "dropped": ["ALL"]},
        },
        "totalPods": 2,
        "totalContainers": 2,
    },
    "labelsAnnotations": {
        "labelCounts": {"pods": [3, 2], "deployments": [4], "services": [1]},
        "annotationCounts": {"pods": [0, 1], "deployments": [2], "services": [0]},
        "commonLabelKeys": ["app", "app.kubernetes.io/name"],
    },
    "volumes": {
        "volumeTypes": {
            "configMap": 2,
            "secret": 1,
            "emptyDir": 1,
            "persistentVolumeClaim": 1,
            "hostPath": 0,
            "downwardAPI": 0,
            "projected": 2,
            "other": 0,
        },
        "volumesPerPod": [3, 4],
        "volumeMountsPerContainer": [2, 3],
        "totalPods": 2,
    },
    "services": {
        "serviceTypes": {"ClusterIP": 2, "NodePort": 0, "LoadBalancer": 1, "ExternalName": 0},
        "portsPerService": [1, 2, 1],
        "totalServices": 3,
    },
    "probes": {
        "livenessProbes": _probe(1),
        "readinessProbes": _probe(1),
        "startupProbes": _probe(0),
        "totalContainers": 2,
    },
}

RAW_BODIES = {
    CollectionType.CLUSTER_METADATA: CLUSTER_METADATA,
    CollectionType.RESOURCE_INVENTORY: RESOURCE_INVENTORY,
    CollectionType.RESOURCE_CONFIGURATION_PATTERNS: RESOURCE_CONFIGURATION_PATTERNS,
}


def _raw_body(collection_type: CollectionType, **overrides: Any) -> Dict[str, Any]:
    """Fresh, mutable copy of a valid raw body with top-level overrides applied."""
    body = copy.deepcopy(RAW_BODIES[collection_type])
    body.update(overrides)
    return body


def _make_payload(
    n: int = 1,
    collection_type: CollectionType = CollectionType.CLUSTER_METADATA,
    rules: Optional[List[str]] = None,
) -> CollectionPayload:
    """Validated payload whose collection id is derived from n."""
    body = validate_collection(
        collection_type, _raw_body(collection_type, collectionId=_collection_id(n))
    )
    return CollectionPayload(
        collection_type=collection_type,
        body=body,
        sanitization=SanitizationMetadata(rules_applied=rules or ["hashed-cluster-id"]),
    )


@pytest.fixture
def cluster_metadata() -> Dict[str, Any]:
    return _raw_body(CollectionType.CLUSTER_METADATA)


@pytest.fixture
def resource_inventory() -> Dict[str, Any]:
    return _raw_body(CollectionType.RESOURCE_INVENTORY)


@pytest.fixture
def configuration_patterns() -> Dict[str, Any]:
    return _raw_body(CollectionType.RESOURCE_CONFIGURATION_PATTERNS)


@pytest.fixture
def payload() -> CollectionPayload:
    return _make_payload(1)


@pytest.fixture
def raw_body():
    """Factory for valid raw bodies: raw_body(collection_type, **overrides)."""
    return _raw_body


@pytest.fixture
def make_payload():
    """Factory for validated payloads: make_payload(n, collection_type, rules)."""
    return _make_payload


@pytest.fixture
def collection_id():
    """Factory for valid collection ids: collection_id(n)."""
    return _collection_id
