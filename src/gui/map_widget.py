"""Виджет карты на PySide6 поверх MapViewport/ViewportCompositor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import QPoint, QPointF, QRectF, QSize, Qt, QTimer, Signal
from PySide6.QtGui import QColor, QImage, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QSizePolicy, QWidget

from render.animation import frame_interval_ms, monotonic_ms
from render.compositor import ViewportCompositor
from shared.constants import (
    ANIMATION_FPS,
    BACKGROUND_COLOR,
    FETCH_POLL_INTERVAL_MS,
    PREFERRED_HEIGHT,
    PREFERRED_WIDTH,
    SLOW_PAINT_THRESHOLD_MS,
    Direction,
    ResamplingQuality,
    ViewEvent,
)
from shared.diagnostics import build_overlay_rows
from shared.observable import CallbackObserver, EventData

if TYPE_CHECKING:
    from PIL import Image
    from PySide6.QtGui import (
        QKeyEvent,
        QMouseEvent,
        QPaintEvent,
        QResizeEvent,
        QWheelEvent,
    )

    from render.compositor import CompositeFrame, FrameLayer, PivotIndicator
    from render.viewport import MapViewport
    from tiles.address import TileAddress
    from tiles.cache import TileCache
    from tiles.fetcher import TileFetcher

logger = logging.getLogger(__name__)

OVERLAY_ROW_HEIGHT = 16
OVERLAY_KEY_X = 20
OVERLAY_VALUE_X = 150
OVERLAY_WIDTH = 370

_KEY_DIRECTIONS = {
    Qt.Key.Key_Up: Direction.UP,
    Qt.Key.Key_Down: Direction.DOWN,
    Qt.Key.Key_Left: Direction.LEFT,
    Qt.Key.Key_Right: Direction.RIGHT,
}


def pil_to_qpixmap(img: Image.Image) -> QPixmap:
    """Convert a PIL image to QPixmap (RGBA)."""
    if img.mode != 'RGBA':
        img = img.convert('RGBA')
    width, height = img.size
    data = img.tobytes('raw', 'RGBA')
    qimage = QImage(data, width, height, width * 4, QImage.Format.Format_RGBA8888)
    # copy(): QImage не владеет буфером bytes
    return QPixmap.fromImage(qimage.copy())


class MapWidget(QWidget):
    """Pannable, zoomable slippy map."""

    server_unreachable = Signal(str)
    view_changed = Signal()

    def __init__(
        self,
        viewport: MapViewport,
        cache: TileCache,
        fetcher: TileFetcher | None,
        *,
        fps: int = ANIMATION_FPS,
        slow_threshold_ms: float = SLOW_PAINT_THRESHOLD_MS,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self._viewport = viewport
        self._cache = cache
        self._fetcher = fetcher
        self._compositor = ViewportCompositor(
            cache, fetcher, slow_threshold_ms=slow_threshold_ms
        )
        self._pixmaps: dict[TileAddress, tuple[int, QPixmap]] = {}

        self._show_overlay = False
        self._mouse = QPoint(0, 0)
        self._drag_start: QPoint | None = None
        self._drag_origin: tuple[int, int] | None = None

        self.setMinimumSize(1, 1)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

        self._observer_adapter = CallbackObserver(self._handle_view_event)
        self._viewport.add_observer(self._observer_adapter)

        self._fetch_timer = QTimer(self)
        self._fetch_timer.setInterval(FETCH_POLL_INTERVAL_MS)
        self._fetch_timer.timeout.connect(self._drain_fetch_results)
        self._fetch_timer.start()

        self._animation_timer = QTimer(self)
        self._animation_timer.setInterval(frame_interval_ms(fps))
        self._animation_timer.timeout.connect(self._animation_tick)

    # --- accessors ---------------------------------------------------------

    @property
    def viewport(self) -> MapViewport:
        return self._viewport

    @property
    def compositor(self) -> ViewportCompositor:
        return self._compositor

    @property
    def show_overlay(self) -> bool:
        return self._show_overlay

    def set_show_overlay(self, visible: bool) -> None:
        self._show_overlay = visible
        self.update()

    def sizeHint(self) -> QSize:
        return QSize(PREFERRED_WIDTH, PREFERRED_HEIGHT)

    # --- view events -------------------------------------------------------

    def _handle_view_event(self, event_data: EventData) -> None:
        if event_data.event is ViewEvent.SERVER_UNREACHABLE:
            self.server_unreachable.emit(str(event_data.data.get('url', '')))
        if event_data.event in (ViewEvent.ZOOM_CHANGED, ViewEvent.POSITION_CHANGED):
            self.view_changed.emit()
        self.update()

    def _drain_fetch_results(self) -> None:
        if self._fetcher is None:
            return
        if self._fetcher.drain(self._cache):
            self._prune_pixmaps()
            self.update()

    def _prune_pixmaps(self) -> None:
        if len(self._pixmaps) <= self._cache.capacity:
            return
        self._pixmaps = {
            address: entry
            for address, entry in self._pixmaps.items()
            if address in self._cache
        }

    def _animation_tick(self) -> None:
        self._viewport.animation.tick()
        if not self._viewport.animation.running:
            self._animation_timer.stop()

    def _ensure_animation_timer(self) -> None:
        if self._viewport.animation.running and not self._animation_timer.isActive():
            self._animation_timer.start()
            self._animation_tick()

    # --- actions -----------------------------------------------------------

    def zoom_in_animated(self, pivot: tuple[int, int] | None = None) -> None:
        self._drag_start = None
        self._viewport.zoom_in_animated(pivot or self._viewport.center)
        self._ensure_animation_timer()

    def zoom_out_animated(self, pivot: tuple[int, int] | None = None) -> None:
        self._drag_start = None
        self._viewport.zoom_out_animated(pivot or self._viewport.center)
        self._ensure_animation_timer()

    def pan(self, direction: Direction) -> None:
        self._viewport.move(direction)

    # --- Qt events ---------------------------------------------------------

    def resizeEvent(self, event: QResizeEvent) -> None:
        size = event.size()
        self._viewport.set_size(size.width(), size.height())
        super().resizeEvent(event)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        pos = event.position().toPoint()
        self._mouse = pos
        if event.button() == Qt.MouseButton.LeftButton:
            self._drag_start = pos
            self._drag_origin = tuple(self._viewport.position)
        elif event.button() == Qt.MouseButton.MiddleButton:
            cursor = self._viewport.cursor_position((pos.x(), pos.y()))
            self._viewport.set_center_position(cursor.x, cursor.y)
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        self._mouse = event.position().toPoint()
        self._handle_drag(self._mouse)
        if self._show_overlay:
            self.update()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._handle_drag(event.position().toPoint())
            self._drag_start = None
            self._drag_origin = None
        super().mouseReleaseEvent(event)

    def _handle_drag(self, pos: QPoint) -> None:
        if self._drag_start is None or self._drag_origin is None:
            return
        tx = self._drag_start.x() - pos.x()
        ty = self._drag_start.y() - pos.y()
        self._viewport.set_map_position(self._drag_origin[0] + tx, self._drag_origin[1] + ty)

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        pos = event.position().toPoint()
        pivot = (pos.x(), pos.y())
        if event.button() == Qt.MouseButton.LeftButton:
            self.zoom_in_animated(pivot)
        elif event.button() == Qt.MouseButton.RightButton:
            self.zoom_out_animated(pivot)

    def wheelEvent(self, event: QWheelEvent) -> None:
        pos = event.position().toPoint()
        pivot = (pos.x(), pos.y())
        delta = event.angleDelta().y()
        if delta > 0:
            self.zoom_in_animated(pivot)
        elif delta < 0:
            self.zoom_out_animated(pivot)
        event.accept()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        key = event.key()
        if key in _KEY_DIRECTIONS:
            self._viewport.move(_KEY_DIRECTIONS[key])
        elif key in (Qt.Key.Key_Plus, Qt.Key.Key_Equal):
            self.zoom_in_animated()
        elif key == Qt.Key.Key_Minus:
            self.zoom_out_animated()
        else:
            super().keyPressEvent(event)

    # --- painting ----------------------------------------------------------

    def paintEvent(self, event: QPaintEvent) -> None:
        t0 = monotonic_ms()
        frame = self._compositor.compose(self._viewport)
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), QColor(*BACKGROUND_COLOR))
            self._paint_frame(painter, frame)
            # Время прохода включает конвертацию и вывод тайлов, без оверлея
            self._compositor.record_paint_time(self._viewport, monotonic_ms() - t0)
            if self._show_overlay:
                self._paint_overlay(painter)
        finally:
            painter.end()

    def _paint_frame(self, painter: QPainter, frame: CompositeFrame) -> None:
        for layer in frame.layers:
            if layer.opacity > 0.0:
                self._paint_layer(painter, layer, frame.quality)
        if frame.indicator is not None:
            self._paint_indicator(painter, frame.indicator)

    def _pixmap(self, address: TileAddress, image: Image.Image) -> QPixmap:
        entry = self._pixmaps.get(address)
        if entry is not None and entry[0] == id(image):
            return entry[1]
        pixmap = pil_to_qpixmap(image)
        self._pixmaps[address] = (id(image), pixmap)
        return pixmap

    def _paint_layer(
        self, painter: QPainter, layer: FrameLayer, quality: ResamplingQuality
    ) -> None:
        painter.save()
        try:
            if layer.opacity < 1.0:
                painter.setOpacity(layer.opacity)
            if layer.scale != 1.0:
                px, py = layer.pivot or self._viewport.center
                painter.translate(px, py)
                painter.scale(layer.scale, layer.scale)
                painter.translate(-px, -py)
                painter.setRenderHint(
                    QPainter.RenderHint.SmoothPixmapTransform,
                    quality is ResamplingQuality.BILINEAR,
                )
            for placement in layer.placements:
                painter.drawPixmap(
                    placement.dx,
                    placement.dy,
                    self._pixmap(placement.address, placement.image),
                )
        finally:
            painter.restore()

    def _paint_indicator(self, painter: QPainter, indicator: PivotIndicator) -> None:
        c = indicator.shade
        left, top, width, height = indicator.scaled_rect
        painter.save()
        try:
            painter.setPen(QPen(QColor(c, c, c)))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(QRectF(left, top, width, height))
        finally:
            painter.restore()

    def _paint_overlay(self, painter: QPainter) -> None:
        rows = build_overlay_rows(
            self._viewport,
            self._compositor.stats,
            self._cache,
            (self._mouse.x(), self._mouse.y()),
        )
        height = OVERLAY_ROW_HEIGHT * len(rows) + 12
        painter.save()
        try:
            painter.fillRect(QRectF(0, 0, OVERLAY_WIDTH, height), QColor(255, 255, 255, 200))
            painter.setPen(QColor(0, 0, 0))
            for row, (key, value) in enumerate(rows):
                y = OVERLAY_ROW_HEIGHT + row * OVERLAY_ROW_HEIGHT
                painter.drawText(QPointF(OVERLAY_KEY_X, y), key)
                painter.drawText(QPointF(OVERLAY_VALUE_X, y), value)
        finally:
            painter.restore()

    def closeEvent(self, event) -> None:
        self._fetch_timer.stop()
        self._animation_timer.stop()
        self._viewport.remove_observer(self._observer_adapter)
        super().closeEvent(event)
