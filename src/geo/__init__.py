"""Geo module - Web Mercator projection helpers."""

from .projection import (
    GeoPoint,
    MapPosition,
    geo_to_pixel,
    geo_to_tile,
    map_size,
    pixel_to_geo,
    tile_count,
    tile_to_geo,
)

__all__ = [
    'GeoPoint',
    'MapPosition',
    'geo_to_pixel',
    'geo_to_tile',
    'map_size',
    'pixel_to_geo',
    'tile_count',
    'tile_to_geo',
]
