"""Process-wide cache of resolved type descriptors, keyed by qualified key."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from typed_wire.types import TypeDescriptor

logger = logging.getLogger(__name__)


class DescriptorQuality(Enum):
    DECLARED = "declared"
    INFERRED = "inferred"


@dataclass(frozen=True)
class CacheEntry:
    descriptor: TypeDescriptor
    quality: DescriptorQuality


class TypeCache:
    """Map from qualified key to the best descriptor seen so far.

    Entries are immutable and replaced whole, so readers never see a
    partially built entry. Writers take a lock for the single compare and
    store; racing writers may recompute the same inference, which is
    harmless.

    Replacement rules:

    - a declared descriptor always replaces the entry
    - an inferred descriptor is stored only if there is no entry yet, or
      the entry is itself inferred and the new descriptor is complete
      (derived from non-null, non-empty data)
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def hint(self, key: str) -> TypeDescriptor | None:
        """Return the cached descriptor for ``key``, if any."""
        entry = self._entries.get(key)
        return entry.descriptor if entry is not None else None

    def put_declared(self, key: str, descriptor: TypeDescriptor) -> None:
        entry = CacheEntry(descriptor, DescriptorQuality.DECLARED)
        with self._lock:
            if self._entries.get(key) != entry:
                logger.debug("Caching declared type %s for '%s'", descriptor.name, key)
            self._entries[key] = entry

    def put_inferred(self, key: str, descriptor: TypeDescriptor) -> bool:
        """Store an inferred descriptor if it improves on the current entry.

        Returns:
            True if the descriptor was stored.
        """
        with self._lock:
            current = self._entries.get(key)
            if current is not None:
                if current.quality is DescriptorQuality.DECLARED:
                    logger.debug("Keeping declared type for '%s' over inferred %s", key, descriptor.name)
                    return False
                if not descriptor.is_complete:
                    logger.debug("Refusing vacuous inferred type %s for '%s'", descriptor.name, key)
                    return False
            self._entries[key] = CacheEntry(descriptor, DescriptorQuality.INFERRED)
        logger.debug("Caching inferred type %s for '%s'", descriptor.name, key)
        return True

    def reset(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
