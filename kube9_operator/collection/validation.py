"""
Schema validation for collection payloads - FAIL FAST.

Each payload kind has one validator. A validator walks the raw collector
output, stops at the first violation with the exact field path, and
otherwise returns the typed model holding only schema fields.

Field paths use dots for object keys, brackets for list indexes and quoted
brackets for map keys, e.g. ``resources.pods.byNamespace["namespace-abc"]``.
"""

import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from kube9_operator.collection.identifiers import (
    CLUSTER_ID_PATTERN,
    COLLECTION_ID_PATTERN,
    KUBERNETES_VERSION_PATTERN,
    NAMESPACE_ID_PATTERN,
    SCHEMA_VERSION_PATTERN,
)
from kube9_operator.collection.schemas import (
    ClusterMetadata,
    CollectionBody,
    CollectionPayload,
    CollectionType,
    Provider,
    ResourceConfigurationPatterns,
    ResourceInventory,
    SanitizationMetadata,
)

MAX_LOCATION_LENGTH = 50
MAX_NODE_COUNT = 10000
MAX_LIST_STRING_LENGTH = 253

SERVICE_TYPES = ("ClusterIP", "NodePort", "LoadBalancer", "ExternalName")

ISO8601_PATTERN = re.compile(
    r"^[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}"
    r"(\.[0-9]{3}|\.[0-9]{6})?(Z|[+-][0-9]{2}:[0-9]{2})?$"
)

_MISSING = object()


class ValidationError(Exception):
    """A payload violated its schema. Carries the offending field path."""

    def __init__(self, field_path: str, reason: str):
        self.field_path = field_path
        self.reason = reason
        super().__init__(f'Validation failed at "{field_path}": {reason}')


# ============================================================================
# PATH HELPERS
# ============================================================================


def _key(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key


def _index(parent: str, index: int) -> str:
    return f"{parent}[{index}]"


def _map_key(parent: str, key: str) -> str:
    return f'{parent}["{key}"]'


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


# ============================================================================
# PRIMITIVE CHECKS
# ============================================================================


def _field(obj: Mapping, key: str) -> Any:
    return obj.get(key, _MISSING)


def _require_present(value: Any, path: str) -> None:
    if value is _MISSING:
        raise ValidationError(path, "required field is missing")


def _require_object(value: Any, path: str) -> Mapping:
    _require_present(value, path)
    if not isinstance(value, Mapping):
        raise ValidationError(path, f"expected object, got {_type_name(value)}")
    return value


def _require_array(value: Any, path: str) -> Sequence:
    _require_present(value, path)
    if not isinstance(value, (list, tuple)):
        raise ValidationError(path, f"expected array, got {_type_name(value)}")
    return value


def _require_string(value: Any, path: str, max_length: Optional[int] = None) -> str:
    _require_present(value, path)
    if not isinstance(value, str):
        raise ValidationError(path, f"expected string, got {_type_name(value)}")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(path, f"expected max {max_length} characters, got {len(value)}")
    return value


def _require_integer(
    value: Any,
    path: str,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    _require_present(value, path)
    # JSON has a single number type, so 3.0 is an integer but True is not
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(path, f"expected number, got {_type_name(value)}")
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValidationError(path, f"expected finite number, got {value}")
        if not value.is_integer():
            raise ValidationError(path, f"expected integer, got {value}")
        value = int(value)

    if minimum is not None and maximum is not None and not minimum <= value <= maximum:
        raise ValidationError(
            path, f"expected integer between {minimum} and {maximum}, got {value}"
        )
    if minimum is not None and value < minimum:
        raise ValidationError(path, f"expected integer >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValidationError(path, f"expected integer <= {maximum}, got {value}")
    return value


def _require_pattern(value: str, pattern: "re.Pattern[str]", path: str, description: str) -> str:
    if not pattern.fullmatch(value):
        raise ValidationError(path, f'expected {description}, got "{value}"')
    return value


def _require_timestamp(value: Any, path: str) -> str:
    text = _require_string(value, path)
    if ISO8601_PATTERN.fullmatch(text):
        try:
            datetime.fromisoformat(text.replace("Z", "+00:00"))
            return text
        except ValueError:
            pass
    raise ValidationError(path, f'expected valid ISO 8601 timestamp, got "{text}"')


def _non_negative(obj: Mapping, parent: str, key: str) -> int:
    path = _key(parent, key)
    return _require_integer(_field(obj, key), path, minimum=0)


def _object(obj: Mapping, parent: str, key: str) -> Mapping:
    path = _key(parent, key)
    return _require_object(_field(obj, key), path)


def _integer_list(obj: Mapping, parent: str, key: str) -> List[int]:
    path = _key(parent, key)
    items = _require_array(_field(obj, key), path)
    return [_require_integer(item, _index(path, i), minimum=0) for i, item in enumerate(items)]


def _string_list(obj: Mapping, parent: str, key: str, nullable: bool = False) -> List[Optional[str]]:
    path = _key(parent, key)
    items = _require_array(_field(obj, key), path)
    result: List[Optional[str]] = []
    for i, item in enumerate(items):
        if item is None and nullable:
            result.append(None)
            continue
        result.append(_require_string(item, _index(path, i), max_length=MAX_LIST_STRING_LENGTH))
    return result


def _counters(obj: Mapping, parent: str, key: str, names: Sequence[str]) -> Dict[str, int]:
    """Validate a closed counter group: every name present, each a non-negative int."""
    group = _object(obj, parent, key)
    path = _key(parent, key)
    return {name: _non_negative(group, path, name) for name in names}


def _identity(obj: Mapping) -> Dict[str, str]:
    """Validate the timestamp/collectionId/clusterId triple every body carries."""
    timestamp = _require_timestamp(_field(obj, "timestamp"), "timestamp")

    collection_id = _require_string(_field(obj, "collectionId"), "collectionId")
    _require_pattern(
        collection_id,
        COLLECTION_ID_PATTERN,
        "collectionId",
        'collection ID format "coll_[32-char-hash]"',
    )

    cluster_id = _require_string(_field(obj, "clusterId"), "clusterId")
    _require_pattern(
        cluster_id, CLUSTER_ID_PATTERN, "clusterId", 'cluster ID format "cls_[32-char-hash]"'
    )

    return {"timestamp": timestamp, "collectionId": collection_id, "clusterId": cluster_id}


def _namespace_id(value: Any, path: str) -> str:
    text = _require_string(value, path)
    return _require_pattern(
        text,
        NAMESPACE_ID_PATTERN,
        path,
        'namespace identifier format "namespace-[12-char-hash]"',
    )


# ============================================================================
# CLUSTER METADATA
# ============================================================================


def validate_cluster_metadata(data: Any) -> ClusterMetadata:
    """Validate raw cluster metadata and return the typed, stripped model."""
    obj = _require_object(data, "root")
    clean: Dict[str, Any] = _identity(obj)

    version = _require_string(_field(obj, "kubernetesVersion"), "kubernetesVersion")
    clean["kubernetesVersion"] = _require_pattern(
        version,
        KUBERNETES_VERSION_PATTERN,
        "kubernetesVersion",
        'Kubernetes version format (e.g., "1.28.0" or "v1.28.0")',
    )

    clean["nodeCount"] = _require_integer(
        _field(obj, "nodeCount"), "nodeCount", minimum=1, maximum=MAX_NODE_COUNT
    )

    provider = obj.get("provider")
    if provider is not None:
        provider = _require_string(provider, "provider")
        valid = [p.value for p in Provider]
        if provider not in valid:
            raise ValidationError(
                "provider", f'expected one of: {", ".join(valid)}, got "{provider}"'
            )
        clean["provider"] = Provider(provider)

    for location in ("region", "zone"):
        value = obj.get(location)
        if value is not None:
            clean[location] = _require_string(value, location, max_length=MAX_LOCATION_LENGTH)

    return ClusterMetadata.model_validate(clean)


# ============================================================================
# RESOURCE INVENTORY
# ============================================================================


def validate_resource_inventory(data: Any) -> ResourceInventory:
    """Validate raw resource inventory and return the typed, stripped model."""
    obj = _require_object(data, "root")
    clean: Dict[str, Any] = _identity(obj)

    # Namespaces
    namespaces = _object(obj, "", "namespaces")
    count = _non_negative(namespaces, "namespaces", "count")
    raw_list = _require_array(_field(namespaces, "list"), "namespaces.list")
    if len(raw_list) != count:
        raise ValidationError(
            "namespaces.list",
            f"expected length {count} to match namespaces.count, got {len(raw_list)}",
        )
    clean["namespaces"] = {
        "count": count,
        "list": [
            _namespace_id(item, _index("namespaces.list", i)) for i, item in enumerate(raw_list)
        ],
    }

    # Resources
    resources = _object(obj, "", "resources")

    pods = _object(resources, "resources", "pods")
    pods_total = _non_negative(pods, "resources.pods", "total")
    by_namespace = _object(pods, "resources.pods", "byNamespace")
    pods_by_namespace: Dict[str, int] = {}
    for key, value in by_namespace.items():
        path = _map_key("resources.pods.byNamespace", str(key))
        _namespace_id(key, path)
        pods_by_namespace[key] = _require_integer(value, path, minimum=0)

    totals = {}
    for kind in ("deployments", "statefulSets", "replicaSets"):
        section = _object(resources, "resources", kind)
        totals[kind] = {"total": _non_negative(section, f"resources.{kind}", "total")}

    services = _object(resources, "resources", "services")
    services_total = _non_negative(services, "resources.services", "total")
    by_type = _object(services, "resources.services", "byType")
    services_by_type: Dict[str, int] = {}
    for key, value in by_type.items():
        path = _map_key("resources.services.byType", str(key))
        if key not in SERVICE_TYPES:
            raise ValidationError(
                path, f'expected one of: {", ".join(SERVICE_TYPES)}, got "{key}"'
            )
        services_by_type[key] = _require_integer(value, path, minimum=0)

    clean["resources"] = {
        "pods": {"total": pods_total, "byNamespace": pods_by_namespace},
        **totals,
        "services": {"total": services_total, "byType": services_by_type},
    }

    return ResourceInventory.model_validate(clean)


# ============================================================================
# RESOURCE CONFIGURATION PATTERNS
# ============================================================================

TRI_STATE = ("true", "false", "notSet")


def _resource_limits_requests(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    containers_path = _key(path, "containers")
    containers = _object(section, path, "containers")
    clean: Dict[str, Any] = {
        key: _string_list(containers, containers_path, key, nullable=True)
        for key in ("cpuRequests", "cpuLimits", "memoryRequests", "memoryLimits")
    }
    clean["totalCount"] = _non_negative(containers, containers_path, "totalCount")
    return {"containers": clean}


def _replica_counts(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    return {
        "deployments": _integer_list(section, path, "deployments"),
        "statefulSets": _integer_list(section, path, "statefulSets"),
        "daemonSetCount": _non_negative(section, path, "daemonSetCount"),
    }


def _image_pull_policies(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    return {
        "policies": _counters(
            section, path, "policies", ("Always", "IfNotPresent", "Never", "notSet")
        ),
        "totalContainers": _non_negative(section, path, "totalContainers"),
    }


def _security_contexts(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)

    pod_path = _key(path, "podLevel")
    pod_level = _object(section, path, "podLevel")

    container_path = _key(path, "containerLevel")
    container_level = _object(section, path, "containerLevel")
    capabilities_path = _key(container_path, "capabilities")
    capabilities = _object(container_level, container_path, "capabilities")

    return {
        "podLevel": {
            "runAsNonRoot": _counters(pod_level, pod_path, "runAsNonRoot", TRI_STATE),
            "fsGroup": _counters(pod_level, pod_path, "fsGroup", ("set", "notSet")),
        },
        "containerLevel": {
            "runAsNonRoot": _counters(container_level, container_path, "runAsNonRoot", TRI_STATE),
            "readOnlyRootFilesystem": _counters(
                container_level, container_path, "readOnlyRootFilesystem", TRI_STATE
            ),
            "allowPrivilegeEscalation": _counters(
                container_level, container_path, "allowPrivilegeEscalation", TRI_STATE
            ),
            "capabilities": {
                "added": _string_list(capabilities, capabilities_path, "added"),
                "dropped": _string_list(capabilities, capabilities_path, "dropped"),
            },
        },
        "totalPods": _non_negative(section, path, "totalPods"),
        "totalContainers": _non_negative(section, path, "totalContainers"),
    }


def _labels_annotations(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    clean: Dict[str, Any] = {}
    for group in ("labelCounts", "annotationCounts"):
        group_path = _key(path, group)
        counts = _object(section, path, group)
        clean[group] = {
            kind: _integer_list(counts, group_path, kind)
            for kind in ("pods", "deployments", "services")
        }
    clean["commonLabelKeys"] = _string_list(section, path, "commonLabelKeys")
    return clean


def _volumes(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    return {
        "volumeTypes": _counters(
            section,
            path,
            "volumeTypes",
            (
                "configMap",
                "secret",
                "emptyDir",
                "persistentVolumeClaim",
                "hostPath",
                "downwardAPI",
                "projected",
                "other",
            ),
        ),
        "volumesPerPod": _integer_list(section, path, "volumesPerPod"),
        "volumeMountsPerContainer": _integer_list(section, path, "volumeMountsPerContainer"),
        "totalPods": _non_negative(section, path, "totalPods"),
    }


def _service_patterns(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    return {
        "serviceTypes": _counters(section, path, "serviceTypes", SERVICE_TYPES),
        "portsPerService": _integer_list(section, path, "portsPerService"),
        "totalServices": _non_negative(section, path, "totalServices"),
    }


def _probe_config(obj: Mapping, parent: str, key: str) -> Dict[str, Any]:
    path = _key(parent, key)
    probe = _object(obj, parent, key)
    return {
        "configured": _non_negative(probe, path, "configured"),
        "notConfigured": _non_negative(probe, path, "notConfigured"),
        "probeTypes": _counters(probe, path, "probeTypes", ("http", "tcp", "exec", "grpc")),
        "initialDelaySeconds": _integer_list(probe, path, "initialDelaySeconds"),
        "timeoutSeconds": _integer_list(probe, path, "timeoutSeconds"),
        "periodSeconds": _integer_list(probe, path, "periodSeconds"),
    }


def _probes(obj: Mapping, path: str) -> Dict[str, Any]:
    section = _object(obj, "", path)
    return {
        "livenessProbes": _probe_config(section, path, "livenessProbes"),
        "readinessProbes": _probe_config(section, path, "readinessProbes"),
        "startupProbes": _probe_config(section, path, "startupProbes"),
        "totalContainers": _non_negative(section, path, "totalContainers"),
    }


# Sub-aggregates in the order they are checked
_PATTERN_SECTIONS: Dict[str, Callable[[Mapping, str], Dict[str, Any]]] = {
    "resourceLimitsRequests": _resource_limits_requests,
    "replicaCounts": _replica_counts,
    "imagePullPolicies": _image_pull_policies,
    "securityContexts": _security_contexts,
    "labelsAnnotations": _labels_annotations,
    "volumes": _volumes,
    "services": _service_patterns,
    "probes": _probes,
}


def validate_resource_configuration_patterns(data: Any) -> ResourceConfigurationPatterns:
    """Validate raw configuration-pattern aggregates and return the typed, stripped model."""
    obj = _require_object(data, "root")
    clean: Dict[str, Any] = _identity(obj)
    for section, validator in _PATTERN_SECTIONS.items():
        clean[section] = validator(obj, section)
    return ResourceConfigurationPatterns.model_validate(clean)


# ============================================================================
# DISPATCH
# ============================================================================

VALIDATORS: Dict[CollectionType, Callable[[Any], CollectionBody]] = {
    CollectionType.CLUSTER_METADATA: validate_cluster_metadata,
    CollectionType.RESOURCE_INVENTORY: validate_resource_inventory,
    CollectionType.RESOURCE_CONFIGURATION_PATTERNS: validate_resource_configuration_patterns,
}


def _collection_type(value: Any, path: str) -> CollectionType:
    if isinstance(value, CollectionType):
        return value
    text = _require_string(value, path)
    try:
        return CollectionType(text)
    except ValueError:
        valid = ", ".join(t.value for t in CollectionType)
        raise ValidationError(path, f'expected one of: {valid}, got "{text}"') from None


def validate_collection(collection_type: Union[CollectionType, str], data: Any) -> CollectionBody:
    """Validate a raw body using the validator registered for its collection type."""
    kind = _collection_type(collection_type, "type")
    return VALIDATORS[kind](data)


def validate_payload(data: Any) -> CollectionPayload:
    """
    Validate a complete wire envelope (version, type, data, sanitization).

    Used for payloads that arrive already wrapped, e.g. replayed from an
    export. Body field paths are reported relative to ``data``.
    """
    obj = _require_object(data, "root")

    version = _require_string(_field(obj, "version"), "version")
    _require_pattern(version, SCHEMA_VERSION_PATTERN, "version", 'schema version format "v1.0.0"')

    kind = _collection_type(_field(obj, "type"), "type")

    try:
        body = VALIDATORS[kind](_field(obj, "data"))
    except ValidationError as e:
        path = "data" if e.field_path == "root" else _key("data", e.field_path)
        raise ValidationError(path, e.reason) from None

    sanitization = _object(obj, "", "sanitization")
    rules = _string_list(sanitization, "sanitization", "rulesApplied")
    if not rules:
        raise ValidationError("sanitization.rulesApplied", "expected at least one rule")
    for i, rule in enumerate(rules):
        if not rule:
            raise ValidationError(
                _index("sanitization.rulesApplied", i), "expected non-empty string"
            )
    sanitized_at = _require_timestamp(
        _field(sanitization, "timestamp"), "sanitization.timestamp"
    )

    return CollectionPayload(
        schema_version=version,
        collection_type=kind,
        body=body,
        sanitization=SanitizationMetadata(
            rules_applied=rules,
            timestamp=datetime.fromisoformat(sanitized_at.replace("Z", "+00:00")),
        ),
    )
