"""In-memory LRU cache of decoded tile images.

TileCache keeps at most ``capacity`` images keyed by TileAddress. Entries live
in a fixed slot arena; a doubly linked freshness list over slot indices gives
O(1) get, put and eviction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.constants import CACHE_SIZE

if TYPE_CHECKING:
    from collections.abc import Iterator

    from PIL import Image

    from tiles.address import TileAddress

logger = logging.getLogger(__name__)

# Индекс «нет слота» в связном списке
_NIL = -1


@dataclass
class CacheStats:
    """Statistics about the tile cache."""

    size: int
    capacity: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class TileCache:
    """Bounded least-recently-used store TileAddress -> PIL image.

    Not thread-safe: only the render thread calls ``get``/``put``. Background
    fetches hand their results back through TileFetcher.drain().

    Usage:
        cache = TileCache(capacity=256)
        cache.put(address, image)
        image = cache.get(address)
    """

    def __init__(self, capacity: int = CACHE_SIZE) -> None:
        if capacity < 1:
            msg = f'Cache capacity must be positive, got {capacity}'
            raise ValueError(msg)
        self._capacity = capacity
        self._index: dict[TileAddress, int] = {}
        self._keys: list[TileAddress | None] = [None] * capacity
        self._images: list[Image.Image | None] = [None] * capacity
        self._prev: list[int] = [_NIL] * capacity
        self._next: list[int] = [_NIL] * capacity
        # head: самый свежий слот, tail: кандидат на вытеснение
        self._head = _NIL
        self._tail = _NIL
        self._free: list[int] = list(range(capacity - 1, -1, -1))
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def size(self) -> int:
        return len(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, address: object) -> bool:
        return address in self._index

    def _unlink(self, slot: int) -> None:
        prev_slot, next_slot = self._prev[slot], self._next[slot]
        if prev_slot == _NIL:
            self._head = next_slot
        else:
            self._next[prev_slot] = next_slot
        if next_slot == _NIL:
            self._tail = prev_slot
        else:
            self._prev[next_slot] = prev_slot
        self._prev[slot] = self._next[slot] = _NIL

    def _push_front(self, slot: int) -> None:
        self._prev[slot] = _NIL
        self._next[slot] = self._head
        if self._head != _NIL:
            self._prev[self._head] = slot
        self._head = slot
        if self._tail == _NIL:
            self._tail = slot

    def get(self, address: TileAddress) -> Image.Image | None:
        """Return the cached image and mark it most recently used.

        A miss returns None and never triggers a fetch.
        """
        slot = self._index.get(address)
        if slot is None:
            self._misses += 1
            return None
        self._hits += 1
        if slot != self._head:
            self._unlink(slot)
            self._push_front(slot)
        return self._images[slot]

    def peek(self, address: TileAddress) -> Image.Image | None:
        """Return the cached image without touching recency."""
        slot = self._index.get(address)
        return None if slot is None else self._images[slot]

    def put(self, address: TileAddress, image: Image.Image) -> None:
        """Insert or overwrite an entry, evicting the LRU one when over capacity."""
        slot = self._index.get(address)
        if slot is not None:
            self._images[slot] = image
            if slot != self._head:
                self._unlink(slot)
                self._push_front(slot)
            return

        if not self._free:
            self._evict_lru()
        slot = self._free.pop()
        self._keys[slot] = address
        self._images[slot] = image
        self._index[address] = slot
        self._push_front(slot)

    def _evict_lru(self) -> None:
        slot = self._tail
        if slot == _NIL:
            return
        self._unlink(slot)
        evicted = self._keys[slot]
        if evicted is not None:
            del self._index[evicted]
        self._keys[slot] = None
        self._images[slot] = None
        self._free.append(slot)
        self._evictions += 1
        logger.debug('Tile evicted from cache: %s', evicted)

    def keys(self) -> Iterator[TileAddress]:
        """Addresses from most to least recently used."""
        slot = self._head
        while slot != _NIL:
            key = self._keys[slot]
            if key is not None:
                yield key
            slot = self._next[slot]

    def clear(self) -> None:
        """Drop all entries, keeping counters."""
        for slot in self._index.values():
            self._keys[slot] = None
            self._images[slot] = None
            self._prev[slot] = self._next[slot] = _NIL
        self._index.clear()
        self._head = self._tail = _NIL
        self._free = list(range(self._capacity - 1, -1, -1))
        logger.info('TileCache cleared')

    def stats(self) -> CacheStats:
        return CacheStats(
            size=self.size(),
            capacity=self._capacity,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )
