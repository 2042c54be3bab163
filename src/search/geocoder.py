"""Поиск мест через Nominatim (XML) и переход к найденной точке."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING
from urllib.parse import quote_plus

import aiohttp

from domain.models import SearchResult
from shared.constants import (
    DEFAULT_SEARCH_ZOOM,
    HTTP_OK,
    HTTP_SEARCH_TIMEOUT,
    MIN_ZOOM,
    NAMEFINDER_URL,
)

if TYPE_CHECKING:
    from render.viewport import MapViewport

logger = logging.getLogger(__name__)

_BRACKETED = re.compile(r'\[.*?\]')
_AFTER_FIRST_SPACE = re.compile(r'\s.*$', re.DOTALL)


def build_search_url(query: str, base_url: str = NAMEFINDER_URL) -> str:
    return f'{base_url}?format=xml&q={quote_plus(query)}'


def _try_float(value: str | None) -> float:
    try:
        return float(value) if value is not None else 0.0
    except ValueError:
        return 0.0


def _try_int(value: str | None) -> int:
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0


def parse_search_results(text: str | bytes) -> list[SearchResult]:
    """Записи ``place`` верхнего уровня ответа геокодера.

    Вложенные ``place`` игнорируются, записи без ``display_name``
    пропускаются, нечисловые координаты и зум превращаются в 0.
    При неразбираемом XML возвращается пустой список.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        logger.error('Malformed geocoding response: %s', e)
        return []

    results: list[SearchResult] = []
    for place in root.findall('place'):
        name = place.get('display_name')
        if not name:
            logger.debug('Skipping place without display_name: %s', place.attrib)
            continue
        description = place.findtext('description') or ''
        results.append(
            SearchResult(
                type=place.get('type', ''),
                lat=_try_float(place.get('lat')),
                lon=_try_float(place.get('lon')),
                name=name,
                zoom=_try_int(place.get('zoom')),
                description=description,
                category=place.get('class', ''),
            )
        )
    return results


async def search_places(
    client: aiohttp.ClientSession,
    query: str,
    *,
    base_url: str = NAMEFINDER_URL,
    async_timeout: float = HTTP_SEARCH_TIMEOUT,
) -> list[SearchResult]:
    """Выполняет запрос к геокодеру. Сетевые ошибки поднимаются как RuntimeError."""
    url = build_search_url(query, base_url)
    timeout = aiohttp.ClientTimeout(total=async_timeout)
    try:
        async with client.get(url, timeout=timeout) as resp:
            if resp.status != HTTP_OK:
                msg = f'Geocoder answered HTTP {resp.status}'
                raise RuntimeError(msg)
            body = await resp.read()
    except (TimeoutError, aiohttp.ClientError) as e:
        msg = f'Failed to search for "{query}": {e}'
        raise RuntimeError(msg) from e
    results = parse_search_results(body)
    logger.info('Search "%s": %d result(s)', query, len(results))
    return results


def result_zoom(result: SearchResult, max_zoom: int) -> int:
    if MIN_ZOOM <= result.zoom <= max_zoom:
        return result.zoom
    return DEFAULT_SEARCH_ZOOM


def apply_search_result(viewport: MapViewport, result: SearchResult) -> None:
    """Установить зум результата и отцентрировать вид на его координатах."""
    viewport.set_zoom(result_zoom(result, viewport.server.max_zoom))
    x, y = viewport.compute_position(result.lon, result.lat)
    viewport.set_center_position(x, y)


def format_result_label(result: SearchResult) -> str:
    """Короткая подпись: первое слово названия и категория."""
    short_name = _AFTER_FIRST_SPACE.sub('', result.name)
    label = short_name
    if result.category:
        label += f' [{result.category}] '
    label = label.strip()
    return label.removesuffix(',')


def format_result_description(result: SearchResult) -> str:
    description = _BRACKETED.sub('', result.description)
    return description or result.name
