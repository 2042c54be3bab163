"""
Diagnostic utilities.

Paint statistics, the info overlay rows and process resource logging.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import psutil

from geo.projection import (
    format_coordinate,
    position_to_lat,
    position_to_lon,
    tile_to_lat,
    tile_to_lon,
)
from shared.constants import PSUTIL_AVAILABLE as _PSUTIL_AVAILABLE

if TYPE_CHECKING:
    from render.viewport import MapViewport
    from tiles.cache import TileCache

logger = logging.getLogger(__name__)


@dataclass
class RenderStats:
    """Счётчики последнего прохода отрисовки."""

    tile_count: int = 0
    tiles_drawn: int = 0
    missing: int = 0
    elapsed_ms: float = 0.0

    def reset(self) -> None:
        self.tile_count = 0
        self.tiles_drawn = 0
        self.missing = 0
        self.elapsed_ms = 0.0


def build_overlay_rows(
    viewport: MapViewport,
    stats: RenderStats,
    cache: TileCache,
    cursor: tuple[int, int] = (0, 0),
) -> list[tuple[str, str]]:
    """Строки информационной панели: (название, значение).

    ``cursor`` задаётся в экранных координатах виджета.
    """
    zoom = viewport.zoom
    map_w, map_h = viewport.map_size
    pos = viewport.position
    cursor_pos = viewport.cursor_position(cursor)
    center = viewport.center_position()
    n = viewport.tile_count
    tile_x, tile_y = viewport.tile_at(cursor_pos)
    return [
        ('Zoom', str(zoom)),
        ('MapSize', f'{map_w}, {map_h}'),
        ('MapPosition', f'{pos.x}, {pos.y}'),
        ('CursorPosition', f'{cursor_pos.x}, {cursor_pos.y}'),
        ('CenterPosition', f'{center.x}, {center.y}'),
        ('Tilescount', f'{n}, {n} ({n * n:,} total)'),
        ('Painted-Tilescount', str(stats.tile_count)),
        ('Paint-Time', f'{int(stats.elapsed_ms)} ms.'),
        ('Active Tile', f'{tile_x}, {tile_y}'),
        (
            'Tile Box Lon/Lat',
            f'{format_coordinate(tile_to_lon(tile_x, zoom))}, '
            f'{format_coordinate(tile_to_lat(tile_y, zoom))}',
        ),
        (
            'Cursor Lon/Lat',
            f'{format_coordinate(position_to_lon(cursor_pos.x, zoom, viewport.tile_size))}, '
            f'{format_coordinate(position_to_lat(cursor_pos.y, zoom, viewport.tile_size))}',
        ),
        ('Tilecache', f'{cache.size():3d} / {cache.capacity:3d}'),
    ]


def get_memory_info() -> dict[str, Any]:
    """Get comprehensive memory usage information."""
    if not _PSUTIL_AVAILABLE:
        return {'error': 'psutil not available'}

    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()

        return {
            'process_rss_mb': round(memory_info.rss / 1024 / 1024, 2),
            'process_vms_mb': round(memory_info.vms / 1024 / 1024, 2),
            'system_total_mb': round(system_memory.total / 1024 / 1024, 2),
            'system_available_mb': round(
                system_memory.available / 1024 / 1024,
                2,
            ),
            'system_used_percent': system_memory.percent,
        }
    except psutil.Error as e:
        return {'error': f'Failed to get memory info: {e}'}


def get_thread_info() -> dict[str, Any]:
    """Get information about active threads."""
    info: dict[str, Any] = {
        'active_count': threading.active_count(),
        'thread_names': [t.name for t in threading.enumerate()],
    }
    if _PSUTIL_AVAILABLE:
        try:
            info['system_threads'] = psutil.Process().num_threads()
        except psutil.Error as e:
            logger.debug('Failed to get system thread count: %s', e)
    return info


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )


def log_thread_status(context: str = '') -> None:
    """Quick thread status logging."""
    thread_info = get_thread_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Thread status%s: Active=%s, System=%s',
        context_label,
        thread_info.get('active_count', 'N/A'),
        thread_info.get('system_threads', 'N/A'),
    )
