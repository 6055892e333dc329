"""
Collection service process entry point.

Configuration comes from the environment (see CollectionConfig.from_env).
Collectors are discovered through the ``kube9_operator.collectors`` entry
point group; each entry point names a zero-argument BaseCollector factory.
"""

import asyncio
import logging
import sys
from importlib.metadata import entry_points
from typing import List

from pydantic import ValidationError

from kube9_operator.collection.base import BaseCollector
from kube9_operator.collection.service import run_collection_service
from kube9_operator.config import CollectionConfig
from kube9_operator.logging_config import setup_logging

COLLECTOR_ENTRY_POINT_GROUP = "kube9_operator.collectors"

logger = logging.getLogger(__name__)


def load_collectors() -> List[BaseCollector]:
    """Instantiate every collector registered under the entry point group."""
    collectors: List[BaseCollector] = []
    for entry_point in entry_points(group=COLLECTOR_ENTRY_POINT_GROUP):
        factory = entry_point.load()
        collector = factory()
        if not isinstance(collector, BaseCollector):
            raise TypeError(
                f"Entry point {entry_point.name} returned {type(collector).__name__}, "
                f"expected a BaseCollector"
            )
        logger.info(f"Loaded collector {entry_point.name} ({collector.collection_type.value})")
        collectors.append(collector)
    return collectors


def main() -> int:
    """Process entry point."""
    try:
        config = CollectionConfig.from_env()
    except ValidationError as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    setup_logging(console_level=config.log_level, log_dir=config.log_dir)

    try:
        collectors = load_collectors()
        if not collectors:
            logger.warning("No collectors registered, nothing will be collected")

        logger.info(f"Starting collection service ({config.tier.value} tier)")
        asyncio.run(run_collection_service(config, collectors))

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        # Print to stderr for the container log
        print(f"Error running collection service: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
