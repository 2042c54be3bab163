"""Tile addressing, caching and fetching.

This module provides:
- TileAddress: cache key (server, x, y, zoom)
- TileCache: in-memory LRU of decoded tiles
- TileServer / TileServerRegistry: tile sources and liveness probe
- TileFetcher: background downloads on an asyncio loop thread
"""

from tiles.address import TileAddress
from tiles.cache import CacheStats, TileCache
from tiles.fetcher import TileFetcher
from tiles.servers import TileServer, TileServerRegistry

__all__ = [
    'CacheStats',
    'TileAddress',
    'TileCache',
    'TileFetcher',
    'TileServer',
    'TileServerRegistry',
]
