"""Web Mercator: географические координаты <-> пиксели карты <-> индексы тайлов.

Пиксельные координаты («координаты карты») зависят от зума: карта занимает
квадрат ``[0, TILE_SIZE * 2**zoom)`` по обеим осям. X замыкается по модулю
ширины карты, Y не замыкается.
"""

from __future__ import annotations

import math
from typing import NamedTuple

from shared.constants import (
    MERCATOR_MAX_LAT_DEG,
    TILE_SIZE,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)


class GeoPoint(NamedTuple):
    lon: float
    lat: float


class MapPosition(NamedTuple):
    """Пиксельная позиция в координатах карты для конкретного зума."""

    x: int
    y: int


def tile_count(zoom: int) -> int:
    """Число тайлов по одной оси."""
    return 1 << zoom


def map_size(zoom: int, tile_size: int = TILE_SIZE) -> int:
    """Ширина (и высота) карты в пикселях."""
    return tile_size * tile_count(zoom)


def is_valid_latitude(lat: float) -> bool:
    return math.isfinite(lat) and abs(lat) <= MERCATOR_MAX_LAT_DEG


def clamp_latitude(lat: float) -> float:
    return max(-MERCATOR_MAX_LAT_DEG, min(MERCATOR_MAX_LAT_DEG, lat))


def _lon_from_fraction(fraction: float) -> float:
    return (fraction * WORLD_LNG_SPAN_DEG) % WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG


def _lat_from_fraction(fraction: float) -> float:
    return math.degrees(math.atan(math.sinh(math.pi - 2.0 * math.pi * fraction)))


def _mercator_fraction(lat: float) -> float:
    """Доля высоты карты для широты; NaN вне области определения."""
    if not abs(lat) < WORLD_LAT_MAX_DEG:
        return math.nan
    lat_rad = math.radians(lat)
    arg = math.tan(lat_rad) + 1.0 / math.cos(lat_rad)
    if arg <= 0.0:
        return math.nan
    return (1.0 - math.log(arg) / math.pi) / 2.0


def _floor_finite(value: float) -> int | float:
    # Нефинитные значения отдаём как есть: вызывающий код обязан проверять вход
    return math.floor(value) if math.isfinite(value) else value


def position_to_lon(x: float, zoom: int, tile_size: int = TILE_SIZE) -> float:
    return _lon_from_fraction(x / map_size(zoom, tile_size))


def position_to_lat(y: float, zoom: int, tile_size: int = TILE_SIZE) -> float:
    return _lat_from_fraction(y / map_size(zoom, tile_size))


def pixel_to_geo(x: float, y: float, zoom: int, tile_size: int = TILE_SIZE) -> GeoPoint:
    """Пиксели карты -> (lon, lat) в градусах."""
    return GeoPoint(
        position_to_lon(x, zoom, tile_size),
        position_to_lat(y, zoom, tile_size),
    )


def lon_to_position(lon: float, zoom: int, tile_size: int = TILE_SIZE) -> int | float:
    return _floor_finite(
        (lon + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * map_size(zoom, tile_size)
    )


def lat_to_position(lat: float, zoom: int, tile_size: int = TILE_SIZE) -> int | float:
    """Широта -> Y в пикселях карты. При |lat| >= 90 возвращает NaN."""
    return _floor_finite(_mercator_fraction(lat) * map_size(zoom, tile_size))


def geo_to_pixel(
    lon: float, lat: float, zoom: int, tile_size: int = TILE_SIZE
) -> MapPosition:
    """(lon, lat) в градусах -> пиксели карты.

    Исключений не бросает: для широты вне области определения компонента y
    будет нефинитной (NaN).
    """
    return MapPosition(
        lon_to_position(lon, zoom, tile_size),
        lat_to_position(lat, zoom, tile_size),
    )


def tile_to_lon(x: float, zoom: int) -> float:
    """Долгота левого края тайла."""
    return _lon_from_fraction(x / tile_count(zoom))


def tile_to_lat(y: float, zoom: int) -> float:
    """Широта верхнего края тайла."""
    return _lat_from_fraction(y / tile_count(zoom))


def tile_to_geo(x: float, y: float, zoom: int) -> GeoPoint:
    return GeoPoint(tile_to_lon(x, zoom), tile_to_lat(y, zoom))


def geo_to_tile(lon: float, lat: float, zoom: int) -> tuple[int, int]:
    """Индексы тайла (x, y), содержащего точку."""
    n = tile_count(zoom)
    x = _floor_finite((lon + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * n)
    y = _floor_finite(_mercator_fraction(lat) * n)
    return x, y


def tile_of(position: tuple[int, int], tile_size: int = TILE_SIZE) -> tuple[int, int]:
    """Индексы тайла под пиксельной позицией карты."""
    return (
        math.floor(position[0] / tile_size),
        math.floor(position[1] / tile_size),
    )


def pixel_angular_size(zoom: int, tile_size: int = TILE_SIZE) -> float:
    """Угловой размер одного пикселя по долготе (градусы)."""
    return WORLD_LNG_SPAN_DEG / map_size(zoom, tile_size)


def format_coordinate(value: float) -> str:
    return f'{value:.5f}'
