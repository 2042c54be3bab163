"""Сборка кадра из тайлов.

ViewportCompositor не рисует пиксели сам: он вычисляет, какие тайлы и где
нужно нарисовать (CompositeFrame), запрашивает недостающие у TileFetcher и
ведёт статистику. Растеризацию выполняют render.raster (Pillow) или
gui.map_widget (QPainter).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from geo.projection import MapPosition, tile_count
from render.animation import monotonic_ms
from shared.constants import (
    PIVOT_RECT_HEIGHT,
    PIVOT_RECT_WIDTH,
    PIVOT_SHADE_BASE,
    PIVOT_SHADE_RANGE,
    SLOW_PAINT_THRESHOLD_MS,
    TILE_SIZE,
    AnimationKind,
    ResamplingQuality,
)
from shared.diagnostics import RenderStats
from tiles.address import TileAddress

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from PIL import Image

    from render.viewport import MapViewport
    from tiles.cache import TileCache
    from tiles.fetcher import TileFetcher
    from tiles.servers import TileServer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridCell:
    """Ячейка сетки: индексы тайла и смещение его угла на экране."""

    x: int
    y: int
    dx: int
    dy: int


def tile_grid(
    origin: tuple[int, int],
    size: tuple[int, int],
    zoom: int,
    tile_size: int = TILE_SIZE,
) -> Iterator[GridCell]:
    """Ячейки, покрывающие окно ``size`` с верхним левым углом ``origin``.

    Индекс X приводится по модулю числа тайлов, поэтому окно за правым краем
    карты (за +180°) продолжается тайлами с её левого края. Индекс Y не
    замыкается и может выйти за пределы ``[0, 2**zoom)``.
    """
    x, y = origin
    width, height = size
    x0 = math.floor(x / tile_size)
    y0 = math.floor(y / tile_size)
    x1 = math.ceil((x + width) / tile_size)
    y1 = math.ceil((y + height) / tile_size)

    n = tile_count(zoom)
    x_offset = n - x1 if x1 > n else 0

    dy = y0 * tile_size - y
    for ty in range(y0, y1):
        dx = x0 * tile_size - x
        for tx in range(x0 + x_offset, x1 + x_offset):
            yield GridCell((tx - x_offset) % n, ty, dx, dy)
            dx += tile_size
        dy += tile_size


@dataclass
class TilePlacement:
    address: TileAddress
    dx: int
    dy: int
    image: Image.Image


@dataclass
class FrameLayer:
    """Слой кадра на одном уровне зума."""

    zoom: int
    origin: MapPosition
    placements: list[TilePlacement] = field(default_factory=list)
    scale: float = 1.0
    opacity: float = 1.0
    pivot: tuple[int, int] | None = None


@dataclass(frozen=True)
class PivotIndicator:
    """Прямоугольник вокруг точки масштабирования во время анимации."""

    center: tuple[int, int]
    factor: float
    scale: float

    @property
    def shade(self) -> int:
        c = PIVOT_SHADE_BASE + math.floor(self.factor * PIVOT_SHADE_RANGE)
        return max(0, min(255, c))

    @property
    def rect(self) -> tuple[int, int, int, int]:
        """(left, top, width, height) до масштабирования."""
        cx, cy = self.center
        return (
            cx - PIVOT_RECT_WIDTH // 2,
            cy - PIVOT_RECT_HEIGHT // 2,
            PIVOT_RECT_WIDTH,
            PIVOT_RECT_HEIGHT,
        )

    @property
    def scaled_rect(self) -> tuple[float, float, float, float]:
        cx, cy = self.center
        w = PIVOT_RECT_WIDTH * self.scale
        h = PIVOT_RECT_HEIGHT * self.scale
        return (cx - w / 2, cy - h / 2, w, h)


def indicator_scale(kind: AnimationKind, factor: float) -> float:
    return 1.0 + factor if kind is AnimationKind.ZOOM_IN else 2.0 - factor


@dataclass
class CompositeFrame:
    size: tuple[int, int]
    layers: list[FrameLayer]
    quality: ResamplingQuality
    indicator: PivotIndicator | None = None


class ViewportCompositor:
    """Builds CompositeFrames for a MapViewport.

    Cache misses are handed to the fetcher and left blank for this pass; the
    tile shows up on a later composite once the fetcher result is drained.
    """

    def __init__(
        self,
        cache: TileCache,
        fetcher: TileFetcher | None = None,
        *,
        clock: Callable[[], float] = monotonic_ms,
        slow_threshold_ms: float = SLOW_PAINT_THRESHOLD_MS,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.stats = RenderStats()
        self.quality = ResamplingQuality.BILINEAR
        self._clock = clock
        self._slow_threshold_ms = slow_threshold_ms

    def compose(self, viewport: MapViewport) -> CompositeFrame:
        self.stats.reset()
        t0 = self._clock()

        layers = [self.compose_layer(viewport, viewport.zoom, viewport.position)]
        indicator: PivotIndicator | None = None

        transition = viewport.transition
        if transition is not None:
            animation = viewport.animation
            factor = animation.factor if animation.running else 1.0
            old = self.compose_layer(
                viewport, viewport.zoom + transition.zoom_offset, transition.origin
            )
            old.scale = transition.scale
            old.opacity = 1.0 - factor
            old.pivot = transition.pivot
            layers.append(old)
            if animation.running:
                indicator = PivotIndicator(
                    center=transition.pivot,
                    factor=factor,
                    scale=indicator_scale(transition.kind, factor),
                )

        self.record_paint_time(viewport, self._clock() - t0)

        return CompositeFrame(
            size=viewport.size,
            layers=layers,
            quality=self.quality,
            indicator=indicator,
        )

    def record_paint_time(self, viewport: MapViewport, elapsed_ms: float) -> None:
        """Store the pass duration; a slow pass switches resampling to nearest."""
        self.stats.elapsed_ms = elapsed_ms
        if (
            elapsed_ms > self._slow_threshold_ms
            and viewport.use_animations
            and self.quality is not ResamplingQuality.NEAREST
        ):
            logger.info(
                'Slow paint (%.0f ms), switching animation resampling to nearest',
                elapsed_ms,
            )
            self.quality = ResamplingQuality.NEAREST

    def compose_layer(
        self, viewport: MapViewport, zoom: int, origin: tuple[int, int]
    ) -> FrameLayer:
        server = viewport.server
        n = tile_count(zoom)
        layer = FrameLayer(zoom=zoom, origin=MapPosition(*origin))
        for cell in tile_grid(origin, viewport.size, zoom, viewport.tile_size):
            if not 0 <= cell.y < n:
                continue
            self.stats.tile_count += 1
            address = TileAddress(server.key, cell.x, cell.y, zoom)
            image = self._lookup(address, server)
            if image is None:
                self.stats.missing += 1
                continue
            layer.placements.append(TilePlacement(address, cell.dx, cell.dy, image))
            self.stats.tiles_drawn += 1
        return layer

    def _lookup(self, address: TileAddress, server: TileServer) -> Image.Image | None:
        image = self.cache.get(address)
        if image is None and self.fetcher is not None:
            self.fetcher.request(address, server.url_for(address))
        return image
