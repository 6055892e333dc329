"""
kube9-operator telemetry backbone.

Periodically gathers anonymized cluster facts, validates them against strict
schemas, and either retains them locally (free tier) or ships them to the
kube9 collection service (pro tier).
"""

__version__ = "1.0.0"
