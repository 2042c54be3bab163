from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TileAddress:
    """Cache key of a single tile: server identity plus x/y/zoom."""

    server_key: str
    x: int
    y: int
    zoom: int

    def path(self) -> str:
        return f'{self.zoom}/{self.x}/{self.y}'

    def __str__(self) -> str:
        return f'{self.server_key}{self.path()}'
