"""Tests for constants module."""

from shared.constants import (
    ALLOWED_TILE_SIZES,
    DEFAULT_MAP_POSITION,
    DEFAULT_SEARCH_ZOOM,
    DEFAULT_TILE_SERVERS,
    DEFAULT_ZOOM,
    DIRECTION_STEPS,
    MAX_ZOOM_LIMIT,
    MIN_ZOOM,
    TILE_SIZE,
    Direction,
    ViewEvent,
)


class TestTileServers:
    """Tests for the built-in tile server list."""

    def test_urls_end_with_slash(self):
        for url, _max_zoom in DEFAULT_TILE_SERVERS:
            assert url.endswith('/')

    def test_max_zoom_in_range(self):
        for _url, max_zoom in DEFAULT_TILE_SERVERS:
            assert MIN_ZOOM <= max_zoom <= MAX_ZOOM_LIMIT

    def test_default_zoom_fits_first_server(self):
        assert MIN_ZOOM <= DEFAULT_ZOOM <= DEFAULT_TILE_SERVERS[0][1]
        assert MIN_ZOOM <= DEFAULT_SEARCH_ZOOM <= DEFAULT_TILE_SERVERS[0][1]


class TestGeometry:
    def test_tile_size_allowed(self):
        assert TILE_SIZE in ALLOWED_TILE_SIZES

    def test_default_position_inside_map(self):
        size = TILE_SIZE * 2**DEFAULT_ZOOM
        x, y = DEFAULT_MAP_POSITION
        assert 0 <= x < size
        assert 0 <= y < size

    def test_every_direction_has_unit_step(self):
        assert set(DIRECTION_STEPS) == set(Direction)
        for dx, dy in DIRECTION_STEPS.values():
            assert abs(dx) + abs(dy) == 1


def test_view_events_are_strings():
    """Event values double as plain strings in log messages."""
    assert ViewEvent.REPAINT == ViewEvent.REPAINT.value
    assert len({e.value for e in ViewEvent}) == len(ViewEvent)
