"""
Pytest configuration and fixtures for kube9 operator tests.
"""

import os

import pytest


def pytest_configure(config):
    """
    Clear collection environment variables before any test modules are imported.
    This runs very early in the pytest lifecycle.
    """
    for name in (
        "API_KEY",
        "SERVER_URL",
        "CLUSTER_METADATA_INTERVAL_SECONDS",
        "RESOURCE_INVENTORY_INTERVAL_SECONDS",
        "RESOURCE_CONFIGURATION_PATTERNS_INTERVAL_SECONDS",
        "MAX_STORED_COLLECTIONS",
        "TRANSMISSION_TIMEOUT_SECONDS",
        "LOG_LEVEL",
        "LOG_DIR",
    ):
        os.environ.pop(name, None)


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any collection settings."""
    for name in list(os.environ):
        if name.endswith("_INTERVAL_SECONDS") or name in (
            "API_KEY",
            "SERVER_URL",
            "MAX_STORED_COLLECTIONS",
            "TRANSMISSION_TIMEOUT_SECONDS",
            "LOG_LEVEL",
            "LOG_DIR",
        ):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
