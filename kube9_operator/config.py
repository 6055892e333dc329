"""
Environment-driven configuration for the collection pipeline.
"""

import os
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from kube9_operator.collection.schemas import CollectionType, Tier

DEFAULT_SERVER_URL = "https://api.kube9.dev"


class CollectionConfig(BaseModel):
    """Configuration for the collection service."""

    # Presence of an API key selects the pro tier
    api_key: Optional[str] = None
    server_url: str = DEFAULT_SERVER_URL

    # Collection intervals
    cluster_metadata_interval_seconds: int = Field(86400, gt=0)
    resource_inventory_interval_seconds: int = Field(21600, gt=0)
    resource_configuration_patterns_interval_seconds: int = Field(43200, gt=0)

    # Free tier retention and pro tier delivery
    max_stored_collections: int = Field(100, ge=1)
    transmission_timeout_seconds: float = Field(30.0, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: Optional[str] = None

    @property
    def tier(self) -> Tier:
        return Tier.PRO if self.api_key else Tier.FREE

    def interval_for(self, collection_type: Union[CollectionType, str]) -> int:
        """Configured interval for a collection type, before minimum clamping."""
        kind = CollectionType(collection_type)
        return {
            CollectionType.CLUSTER_METADATA: self.cluster_metadata_interval_seconds,
            CollectionType.RESOURCE_INVENTORY: self.resource_inventory_interval_seconds,
            CollectionType.RESOURCE_CONFIGURATION_PATTERNS: (
                self.resource_configuration_patterns_interval_seconds
            ),
        }[kind]

    @classmethod
    def from_env(cls) -> "CollectionConfig":
        """Create config from environment variables."""
        return cls(
            api_key=os.getenv("API_KEY") or None,
            server_url=os.getenv("SERVER_URL", DEFAULT_SERVER_URL),
            cluster_metadata_interval_seconds=os.getenv(
                "CLUSTER_METADATA_INTERVAL_SECONDS", "86400"
            ),
            resource_inventory_interval_seconds=os.getenv(
                "RESOURCE_INVENTORY_INTERVAL_SECONDS", "21600"
            ),
            resource_configuration_patterns_interval_seconds=os.getenv(
                "RESOURCE_CONFIGURATION_PATTERNS_INTERVAL_SECONDS", "43200"
            ),
            max_stored_collections=os.getenv("MAX_STORED_COLLECTIONS", "100"),
            transmission_timeout_seconds=os.getenv("TRANSMISSION_TIMEOUT_SECONDS", "30"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=os.getenv("LOG_DIR") or None,
        )
