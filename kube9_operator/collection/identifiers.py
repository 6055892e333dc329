"""
Identifier formats shared by every collection payload.

Collection ids are generated here. Cluster ids and namespace ids are produced
upstream by the cluster identifier utilities; the pipeline only checks their
shape.
"""

import re
import secrets

COLLECTION_ID_PREFIX = "coll_"
CLUSTER_ID_PREFIX = "cls_"
NAMESPACE_ID_PREFIX = "namespace-"

COLLECTION_ID_PATTERN = re.compile(r"^coll_[a-z0-9]{32}$")
CLUSTER_ID_PATTERN = re.compile(r"^cls_[a-z0-9]{32}$")
NAMESPACE_ID_PATTERN = re.compile(r"^namespace-[a-f0-9]{12}$")
KUBERNETES_VERSION_PATTERN = re.compile(r"^v?[0-9]+\.[0-9]+\.[0-9]+$")
SCHEMA_VERSION_PATTERN = re.compile(r"^v[0-9]+\.[0-9]+\.[0-9]+$")


def generate_collection_id() -> str:
    """Generate a fresh collection id: ``coll_`` followed by 32 lowercase hex chars."""
    return f"{COLLECTION_ID_PREFIX}{secrets.token_hex(16)}"


def is_collection_id(value: str) -> bool:
    return bool(COLLECTION_ID_PATTERN.fullmatch(value))


def is_cluster_id(value: str) -> bool:
    return bool(CLUSTER_ID_PATTERN.fullmatch(value))


def is_namespace_id(value: str) -> bool:
    return bool(NAMESPACE_ID_PATTERN.fullmatch(value))
