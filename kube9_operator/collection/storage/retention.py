"""
In-memory retention store for free-tier collections.

Keeps the most recent N validated payloads for local retrieval. Memory is
bounded by evicting the least recently *stored* entry; reads never change
ordering. Nothing survives a restart.
"""

import logging
from collections import OrderedDict
from typing import Callable, List, Optional

from kube9_operator.collection.schemas import CollectionPayload

logger = logging.getLogger(__name__)

DEFAULT_MAX_COLLECTIONS = 100


class RetentionStore:
    """
    Bounded, keyed ring buffer of collection payloads.

    Entries are keyed by collection id and ordered by insertion. Storing an id
    that already exists replaces its content and moves it to the most recent
    position. Callers always receive copies, never the stored objects.

    All methods run on the event loop thread; no locking is needed as long as
    the store is not shared with other OS threads.
    """

    def __init__(
        self,
        max_collections: int = DEFAULT_MAX_COLLECTIONS,
        on_size_change: Optional[Callable[[int], None]] = None,
    ):
        """
        Initialize retention store.

        Args:
            max_collections: Maximum number of payloads to keep (must be >= 1)
            on_size_change: Optional hook called with the new size after every change
        """
        if max_collections < 1:
            raise ValueError(f"max_collections must be at least 1, got {max_collections}")

        self.max_collections = max_collections
        self._on_size_change = on_size_change
        # Oldest first, most recent last
        self._entries: "OrderedDict[str, CollectionPayload]" = OrderedDict()

        logger.info(f"Retention store initialized (max_collections={max_collections})")

    @property
    def capacity(self) -> int:
        return self.max_collections

    async def store(self, payload: CollectionPayload) -> None:
        """
        Store a payload at the most recent position.

        Re-storing an existing collection id updates it in place. If the store
        is over capacity afterwards, the oldest entry is evicted.
        """
        collection_id = payload.collection_id

        if collection_id in self._entries:
            self._entries.move_to_end(collection_id)
        self._entries[collection_id] = payload.model_copy(deep=True)

        while len(self._entries) > self.max_collections:
            evicted_id, evicted = self._entries.popitem(last=False)
            logger.debug(
                f"Evicted collection {evicted_id} ({evicted.collection_type.value}) "
                f"to stay within {self.max_collections} entries"
            )

        logger.info(
            f"Stored collection {collection_id} ({payload.collection_type.value}), "
            f"size={len(self._entries)}/{self.max_collections}"
        )
        self._notify_size()

    async def retrieve(self, collection_id: str) -> Optional[CollectionPayload]:
        """Return a copy of the payload with this collection id, or None."""
        payload = self._entries.get(collection_id)
        if payload is None:
            logger.debug(f"Collection {collection_id} not found")
            return None
        return payload.model_copy(deep=True)

    async def list_recent(self, limit: int) -> List[CollectionPayload]:
        """
        List up to ``limit`` payloads, most recent first.

        Raises:
            ValueError: If limit is negative
        """
        if limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")

        result: List[CollectionPayload] = []
        for payload in reversed(self._entries.values()):
            if len(result) >= limit:
                break
            result.append(payload.model_copy(deep=True))

        logger.debug(f"Listed {len(result)} of {len(self._entries)} stored collections")
        return result

    async def clear(self) -> None:
        """Remove every stored payload."""
        cleared = len(self._entries)
        self._entries.clear()
        logger.info(f"Retention store cleared ({cleared} collections removed)")
        self._notify_size()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, collection_id: object) -> bool:
        return collection_id in self._entries

    def _notify_size(self) -> None:
        if self._on_size_change is None:
            return
        try:
            self._on_size_change(len(self._entries))
        except Exception as e:
            logger.warning(f"Size change hook failed: {e}")
