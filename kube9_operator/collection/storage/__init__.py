"""
Collection storage module.

Provides the bounded in-memory retention store used by free-tier operators.
"""

from kube9_operator.collection.storage.retention import RetentionStore

__all__ = ["RetentionStore"]
