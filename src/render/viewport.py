"""Состояние вида карты: зум, позиция, размер окна, активный сервер.

MapViewport владеет единственным AnimationController и описанием текущего
анимированного перехода масштаба (ZoomTransition). Все методы вызываются
только из потока отрисовки.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from geo.projection import (
    GeoPoint,
    MapPosition,
    geo_to_pixel,
    map_size,
    pixel_to_geo,
    tile_count,
    tile_of,
)
from render.animation import AnimationController
from shared.constants import (
    ANIMATION_DURATION_MS,
    DEFAULT_MAP_POSITION,
    DEFAULT_ZOOM,
    DIRECTION_STEPS,
    MIN_ZOOM,
    MOVE_STEP_PX,
    PREFERRED_HEIGHT,
    PREFERRED_WIDTH,
    TILE_SIZE,
    AnimationKind,
    Direction,
    ViewEvent,
)
from shared.observable import Observable

if TYPE_CHECKING:
    from collections.abc import Callable

    from tiles.servers import TileServer, TileServerRegistry

logger = logging.getLogger(__name__)


@dataclass
class ZoomTransition:
    """Кадр «до масштабирования», который плавно исчезает поверх нового."""

    kind: AnimationKind
    origin: MapPosition
    pivot: tuple[int, int]
    zoom_offset: int
    scale: float = 1.0


class MapViewport(Observable):
    def __init__(
        self,
        registry: TileServerRegistry,
        *,
        zoom: int = DEFAULT_ZOOM,
        position: tuple[int, int] = DEFAULT_MAP_POSITION,
        size: tuple[int, int] = (PREFERRED_WIDTH, PREFERRED_HEIGHT),
        use_animations: bool = True,
        animation_duration_ms: float = ANIMATION_DURATION_MS,
        animation: AnimationController | None = None,
        tile_size: int = TILE_SIZE,
        on_server_unreachable: Callable[[TileServer], None] | None = None,
    ) -> None:
        super().__init__()
        self.registry = registry
        self.tile_size = tile_size
        self.use_animations = use_animations
        self.animation_duration_ms = animation_duration_ms
        self.animation = animation if animation is not None else AnimationController()
        self.on_server_unreachable = on_server_unreachable
        self.transition: ZoomTransition | None = None

        self._width, self._height = size
        self._zoom = 0
        self._x = 0
        self._y = 0
        self.set_zoom(zoom)
        self.set_map_position(*position)

    # --- basic state -------------------------------------------------------

    @property
    def server(self) -> TileServer:
        return self.registry.active

    @property
    def zoom(self) -> int:
        return self._zoom

    @property
    def position(self) -> MapPosition:
        return MapPosition(self._x, self._y)

    @property
    def size(self) -> tuple[int, int]:
        return self._width, self._height

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def tile_count(self) -> int:
        return tile_count(self._zoom)

    @property
    def x_max(self) -> int:
        return map_size(self._zoom, self.tile_size)

    @property
    def y_max(self) -> int:
        return map_size(self._zoom, self.tile_size)

    @property
    def map_size(self) -> tuple[int, int]:
        return self.x_max, self.y_max

    @property
    def in_transition(self) -> bool:
        return self.transition is not None

    def set_size(self, width: int, height: int) -> None:
        if (width, height) == (self._width, self._height):
            return
        self._width, self._height = max(0, width), max(0, height)
        self.notify_observers(ViewEvent.REPAINT)

    def set_zoom(self, zoom: int) -> None:
        self._apply_zoom(max(MIN_ZOOM, min(self.server.max_zoom, zoom)))

    def _apply_zoom(self, zoom: int) -> None:
        # Без ограничения сверху: activate_server уменьшает зум по одному шагу
        if zoom == self._zoom:
            return
        old_zoom = self._zoom
        self._zoom = zoom
        self.notify_observers(
            ViewEvent.ZOOM_CHANGED, {'old': old_zoom, 'new': zoom}
        )

    def set_map_position(self, x: int, y: int) -> None:
        """Позиция верхнего левого угла окна; X замыкается на ширину карты."""
        x_max = self.x_max
        if x > x_max:
            x -= x_max
        elif x < 0:
            x += x_max
        if (x, y) == (self._x, self._y):
            return
        old = self.position
        self._x, self._y = x, y
        self.notify_observers(
            ViewEvent.POSITION_CHANGED, {'old': old, 'new': self.position}
        )

    def translate(self, dx: int, dy: int) -> None:
        self.set_map_position(self._x + dx, self._y + dy)

    def move(self, direction: Direction, step: int = MOVE_STEP_PX) -> None:
        sx, sy = DIRECTION_STEPS[direction]
        self.translate(sx * step, sy * step)

    @property
    def center(self) -> tuple[int, int]:
        """Центр окна в экранных координатах."""
        return self._width // 2, self._height // 2

    def center_position(self) -> MapPosition:
        return MapPosition(self._x + self._width // 2, self._y + self._height // 2)

    def set_center_position(self, x: int, y: int) -> None:
        self.set_map_position(x - self._width // 2, y - self._height // 2)

    def cursor_position(self, screen: tuple[int, int]) -> MapPosition:
        return MapPosition(self._x + screen[0], self._y + screen[1])

    # --- zoom --------------------------------------------------------------

    def zoom_in(self, pivot: tuple[int, int]) -> bool:
        """Приблизить на один уровень, сохраняя точку под ``pivot`` на месте."""
        if self._zoom >= self.server.max_zoom:
            return False
        x, y = self._x, self._y
        self._apply_zoom(self._zoom + 1)
        self.set_map_position(x * 2 + pivot[0], y * 2 + pivot[1])
        self.notify_observers(ViewEvent.REPAINT)
        return True

    def zoom_out(self, pivot: tuple[int, int]) -> bool:
        if self._zoom <= MIN_ZOOM:
            return False
        x, y = self._x, self._y
        self._apply_zoom(self._zoom - 1)
        # Деление с отбрасыванием дробной части к нулю
        self.set_map_position(int((x - pivot[0]) / 2), int((y - pivot[1]) / 2))
        self.notify_observers(ViewEvent.REPAINT)
        return True

    def zoom_in_animated(self, pivot: tuple[int, int]) -> bool:
        return self._zoom_animated(AnimationKind.ZOOM_IN, pivot)

    def zoom_out_animated(self, pivot: tuple[int, int]) -> bool:
        return self._zoom_animated(AnimationKind.ZOOM_OUT, pivot)

    def _zoom_animated(self, kind: AnimationKind, pivot: tuple[int, int]) -> bool:
        zoom_step = self.zoom_in if kind is AnimationKind.ZOOM_IN else self.zoom_out
        if not self.use_animations:
            return zoom_step(pivot)
        if self.animation.running:
            return False
        if kind is AnimationKind.ZOOM_IN and self._zoom >= self.server.max_zoom:
            return False
        if kind is AnimationKind.ZOOM_OUT and self._zoom <= MIN_ZOOM:
            return False

        # Старый кадр рисуется с зумом на единицу «назад» от нового
        offset = -1 if kind is AnimationKind.ZOOM_IN else 1
        transition = ZoomTransition(
            kind=kind,
            origin=self.position,
            pivot=(pivot[0], pivot[1]),
            zoom_offset=offset,
        )

        def on_frame(factor: float) -> None:
            if kind is AnimationKind.ZOOM_IN:
                transition.scale = 1.0 + factor
            else:
                transition.scale = 1.0 - 0.5 * factor
            self.notify_observers(ViewEvent.REPAINT)

        def on_complete() -> None:
            self.transition = None
            self.notify_observers(ViewEvent.REPAINT)

        self.transition = transition
        zoom_step(pivot)
        self.animation.start(
            kind,
            self.animation_duration_ms,
            on_frame=on_frame,
            on_complete=on_complete,
        )
        return True

    def cancel_animation(self) -> None:
        self.animation.cancel()
        if self.transition is not None:
            self.transition = None
            self.notify_observers(ViewEvent.REPAINT)

    # --- tile servers ------------------------------------------------------

    def activate_server(self, server: TileServer) -> None:
        if server is self.server:
            return
        self.registry.activate(server)
        while self._zoom > server.max_zoom:
            if not self.zoom_out(self.center):
                break
        self.notify_observers(ViewEvent.SERVER_CHANGED, {'url': server.url})
        self.check_active_server()

    def next_tile_server(self) -> TileServer | None:
        server = self.registry.next()
        if server is None:
            return None
        self.activate_server(server)
        self.notify_observers(ViewEvent.REPAINT)
        return server

    def check_active_server(self) -> bool:
        """Warn once if the active server was flagged unreachable."""
        server = self.server
        if not server.broken:
            return True
        logger.warning('Active tile server %s is unreachable', server.url)
        self.notify_observers(ViewEvent.SERVER_UNREACHABLE, {'url': server.url})
        if self.on_server_unreachable is not None:
            self.on_server_unreachable(server)
        return False

    # --- coordinates -------------------------------------------------------

    def tile_at(self, position: tuple[int, int]) -> tuple[int, int]:
        return tile_of(position, self.tile_size)

    def longitude_latitude(self, position: tuple[int, int]) -> GeoPoint:
        return pixel_to_geo(position[0], position[1], self._zoom, self.tile_size)

    def compute_position(self, lon: float, lat: float) -> MapPosition:
        return geo_to_pixel(lon, lat, self._zoom, self.tile_size)

    def screen_coordinates(self, lon: float, lat: float) -> tuple[int, int]:
        """Экранные координаты точки для дорисовки поверх карты."""
        px, py = self.compute_position(lon, lat)
        return px - self._x, py - self._y
