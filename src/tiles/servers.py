"""Tile servers and the registry that tracks which one is active."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp

from shared.constants import (
    DEFAULT_TILE_SERVERS,
    HTTP_OK,
    HTTP_PROBE_TIMEOUT,
    MAX_ZOOM_LIMIT,
    MIN_ZOOM,
    PROBE_TILE,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from domain.models import ViewerSettings
    from tiles.address import TileAddress

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class TileServer:
    """Slippy-map tile source. ``url`` ends with '/'."""

    url: str
    max_zoom: int
    broken: bool = False

    def __post_init__(self) -> None:
        if not (MIN_ZOOM <= self.max_zoom <= MAX_ZOOM_LIMIT):
            msg = f'max_zoom must be in [{MIN_ZOOM}, {MAX_ZOOM_LIMIT}]: {self.max_zoom}'
            raise ValueError(msg)

    @property
    def key(self) -> str:
        return self.url

    def tile_url(self, zoom: int, x: int, y: int) -> str:
        return f'{self.url}{zoom}/{x}/{y}.png'

    def url_for(self, address: TileAddress) -> str:
        return self.tile_url(address.zoom, address.x, address.y)

    @property
    def probe_url(self) -> str:
        z, x, y = PROBE_TILE
        return self.tile_url(z, x, y)

    def __str__(self) -> str:
        return self.url


class TileServerRegistry:
    """Ordered list of servers; the first one is active by default."""

    def __init__(self, servers: Iterable[TileServer]) -> None:
        self._servers: list[TileServer] = list(servers)
        if not self._servers:
            msg = 'At least one tile server is required'
            raise ValueError(msg)
        self._active: TileServer = self._servers[0]

    @classmethod
    def default(cls) -> TileServerRegistry:
        return cls(TileServer(url, max_zoom) for url, max_zoom in DEFAULT_TILE_SERVERS)

    @classmethod
    def from_settings(cls, settings: ViewerSettings) -> TileServerRegistry:
        return cls(TileServer(s.url, s.max_zoom) for s in settings.servers)

    @property
    def servers(self) -> list[TileServer]:
        return list(self._servers)

    @property
    def active(self) -> TileServer:
        return self._active

    def __len__(self) -> int:
        return len(self._servers)

    def __iter__(self):
        return iter(self._servers)

    def activate(self, server: TileServer) -> TileServer:
        if not any(s is server for s in self._servers):
            msg = f'Unknown tile server: {server.url}'
            raise ValueError(msg)
        self._active = server
        logger.info('Active tile server: %s (max zoom %d)', server.url, server.max_zoom)
        return server

    def next(self) -> TileServer | None:
        """Server after the active one, wrapping around; None if active is unlisted."""
        for i, server in enumerate(self._servers):
            if server is self._active:
                return self._servers[(i + 1) % len(self._servers)]
        return None

    async def probe(self, server: TileServer, session: aiohttp.ClientSession) -> bool:
        """Request the probe tile; any failure marks the server broken."""
        timeout = aiohttp.ClientTimeout(total=HTTP_PROBE_TIMEOUT)
        try:
            async with session.get(server.probe_url, timeout=timeout) as resp:
                if resp.status == HTTP_OK:
                    await resp.read()
                    server.broken = False
                    return True
                logger.error('Tile server %s answered HTTP %d', server.url, resp.status)
        except (TimeoutError, aiohttp.ClientError) as e:
            logger.error('Tile server %s is unreachable: %s', server.url, e)
        server.broken = True
        return False

    async def probe_all(self, session: aiohttp.ClientSession) -> dict[str, bool]:
        results = await asyncio.gather(*(self.probe(s, session) for s in self._servers))
        return {s.url: ok for s, ok in zip(self._servers, results, strict=True)}
