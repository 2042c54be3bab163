"""Tests for gui.map_widget.MapWidget (offscreen Qt)."""

import os
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip('PySide6')
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

from PIL import Image
from PySide6.QtCore import QPoint, Qt
from PySide6.QtTest import QTest
from PySide6.QtWidgets import QApplication

import gui.map_widget as map_widget_module
from gui.map_widget import MapWidget, pil_to_qpixmap
from render.animation import AnimationController
from render.viewport import MapViewport
from tiles.address import TileAddress
from shared.constants import ResamplingQuality
from tiles.cache import TileCache
from tiles.servers import TileServer, TileServerRegistry

URL = 'https://t.example.org/'


@pytest.fixture(scope='module')
def qapp():
    return QApplication.instance() or QApplication([])


@pytest.fixture
def server():
    return TileServer(URL, 19)


@pytest.fixture
def viewport(server):
    return MapViewport(
        TileServerRegistry([server]),
        zoom=1,
        position=(0, 0),
        size=(320, 200),
        use_animations=False,
    )


@pytest.fixture
def cache():
    return TileCache(16)


@pytest.fixture
def widget(qapp, viewport, cache):
    w = MapWidget(viewport, cache, None)
    w.resize(320, 200)
    w.show()
    yield w
    w.close()


def test_pil_to_qpixmap(qapp):
    pixmap = pil_to_qpixmap(Image.new('RGB', (3, 2), (10, 20, 30)))
    assert (pixmap.width(), pixmap.height()) == (3, 2)
    assert pixmap.toImage().pixelColor(1, 1).getRgb()[:3] == (10, 20, 30)


class TestPainting:
    def test_cached_tile_and_background(self, widget, cache):
        cache.put(TileAddress(URL, 0, 0, 1), Image.new('RGBA', (256, 256), (255, 0, 0, 255)))
        image = widget.grab().toImage()
        assert image.pixelColor(10, 10).getRgb()[:3] == (255, 0, 0)
        # Тайл (1, 0) ещё не загружен: виден фон
        assert image.pixelColor(300, 10).getRgb()[:3] == (0xC0, 0xC0, 0xC0)
        assert widget.compositor.stats.tiles_drawn == 1

    def test_overlay_paints(self, widget):
        widget.set_show_overlay(True)
        assert widget.show_overlay
        image = widget.grab().toImage()
        assert image.pixelColor(5, 5).getRgb()[:3] != (0xC0, 0xC0, 0xC0)


class TestInput:
    def test_arrow_keys_pan(self, widget, viewport):
        QTest.keyClick(widget, Qt.Key.Key_Right)
        QTest.keyClick(widget, Qt.Key.Key_Down)
        assert viewport.position == (32, 32)

    def test_plus_minus_zoom(self, widget, viewport):
        QTest.keyClick(widget, Qt.Key.Key_Plus)
        assert viewport.zoom == 2
        QTest.keyClick(widget, Qt.Key.Key_Minus)
        assert viewport.zoom == 1

    def test_left_drag_pans(self, widget, viewport):
        viewport.set_map_position(100, 100)
        QTest.mousePress(
            widget, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(100, 100)
        )
        QTest.mouseRelease(
            widget, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(60, 70)
        )
        assert viewport.position == (140, 130)

    def test_double_click_zooms_about_cursor(self, widget, viewport):
        QTest.mouseDClick(
            widget, Qt.MouseButton.LeftButton, Qt.KeyboardModifier.NoModifier, QPoint(50, 40)
        )
        assert viewport.zoom == 2
        assert viewport.position == (50, 40)


class TestSignals:
    def test_server_unreachable_signal(self, widget, viewport, server):
        received = []
        widget.server_unreachable.connect(received.append)
        server.broken = True
        viewport.check_active_server()
        assert received == [URL]

    def test_view_changed_signal(self, widget, viewport):
        received = []
        widget.view_changed.connect(lambda: received.append(True))
        viewport.translate(5, 0)
        assert received

    def test_drain_moves_results_into_cache(self, qapp, viewport, cache):
        fetcher = MagicMock()
        fetcher.drain.return_value = 1
        w = MapWidget(viewport, cache, fetcher)
        try:
            w._drain_fetch_results()
            fetcher.drain.assert_called_once_with(cache)
        finally:
            w.close()


class TestAnimatedView:
    """Widget driving an animated viewport with a controllable clock."""

    @pytest.fixture
    def clock(self):
        return [0.0]

    @pytest.fixture
    def animated_widget(self, qapp, server, cache, clock):
        viewport = MapViewport(
            TileServerRegistry([server]),
            zoom=1,
            position=(0, 0),
            size=(320, 200),
            animation=AnimationController(clock=lambda: clock[0]),
        )
        w = MapWidget(viewport, cache, None)
        w.resize(320, 200)
        w.show()
        yield w
        w.close()

    def test_first_animation_frame_without_waiting(self, animated_widget):
        animation = animated_widget.viewport.animation
        with patch.object(animation, 'tick', wraps=animation.tick) as tick:
            animated_widget.zoom_in_animated((50, 40))
        tick.assert_called_once()
        assert animation.running
        assert animation.factor == 0.0

    def test_slow_tile_conversion_switches_to_nearest(self, animated_widget, cache, clock):
        cache.put(TileAddress(URL, 0, 0, 1), Image.new('RGBA', (256, 256), (255, 0, 0, 255)))
        real_convert = map_widget_module.pil_to_qpixmap

        def slow_convert(img):
            clock[0] += 600.0
            return real_convert(img)

        with patch('gui.map_widget.pil_to_qpixmap', side_effect=slow_convert):
            with patch('gui.map_widget.monotonic_ms', side_effect=lambda: clock[0]):
                animated_widget.grab()

        compositor = animated_widget.compositor
        assert compositor.stats.elapsed_ms >= 600.0
        assert compositor.quality is ResamplingQuality.NEAREST

    def test_fast_paint_keeps_bilinear(self, animated_widget, cache):
        cache.put(TileAddress(URL, 0, 0, 1), Image.new('RGBA', (256, 256), (255, 0, 0, 255)))
        animated_widget.grab()
        assert animated_widget.compositor.quality is ResamplingQuality.BILINEAR
