"""Tests for search.geocoder (Nominatim XML search)."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from domain.models import SearchResult
from render.viewport import MapViewport
from search.geocoder import (
    apply_search_result,
    build_search_url,
    format_result_description,
    format_result_label,
    parse_search_results,
    result_zoom,
    search_places,
)
from tiles.servers import TileServer, TileServerRegistry

COLOGNE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<searchresults querystring="cologne">
  <place type="city" lat="50.1" lon="6.2" display_name="Cologne" zoom="10" class="place">
    <description>City [de] on the Rhine</description>
  </place>
</searchresults>
"""


def make_response(status: int, body: bytes = b'') -> MagicMock:
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=None)
    return resp


class TestBuildSearchUrl:
    def test_query_is_url_encoded(self):
        url = build_search_url('Köln Dom', 'https://geo.example.org/search')
        assert url == 'https://geo.example.org/search?format=xml&q=K%C3%B6ln+Dom'


class TestParseSearchResults:
    """Parsing of geocoder XML responses."""

    def test_single_place(self):
        results = parse_search_results(COLOGNE_XML)
        assert results == [
            SearchResult(
                type='city',
                lat=50.1,
                lon=6.2,
                name='Cologne',
                zoom=10,
                description='City [de] on the Rhine',
                category='place',
            )
        ]

    def test_non_numeric_values_become_zero(self):
        xml = '<r><place type="x" lat="north" lon="6.2" display_name="A" zoom="far"/></r>'
        (result,) = parse_search_results(xml)
        assert result.lat == 0
        assert result.lon == 6.2
        assert result.zoom == 0
        assert result.description == ''

    def test_missing_attributes_default(self):
        (result,) = parse_search_results('<r><place display_name="B"/></r>')
        assert (result.type, result.lat, result.lon, result.zoom) == ('', 0.0, 0.0, 0)

    def test_place_without_name_is_skipped(self):
        xml = '<r><place lat="1" lon="2"/><place display_name="C" lat="3" lon="4"/></r>'
        assert [r.name for r in parse_search_results(xml)] == ['C']

    def test_nested_places_ignored(self):
        xml = '<r><place display_name="Top"><place display_name="Inner"/></place></r>'
        assert [r.name for r in parse_search_results(xml)] == ['Top']

    def test_preserves_order(self):
        xml = '<r><place display_name="1"/><place display_name="2"/><place display_name="3"/></r>'
        assert [r.name for r in parse_search_results(xml)] == ['1', '2', '3']

    def test_malformed_xml_gives_empty_list(self):
        assert parse_search_results('<r><place') == []

    def test_bytes_input(self):
        assert len(parse_search_results(COLOGNE_XML.encode('utf-8'))) == 1


class TestSearchPlaces:
    """HTTP round trip against a mocked session."""

    @pytest.mark.asyncio
    async def test_success(self):
        session = MagicMock()
        session.get = MagicMock(return_value=make_response(200, COLOGNE_XML.encode()))

        results = await search_places(
            session, 'cologne', base_url='https://geo.example.org/search'
        )

        assert [r.name for r in results] == ['Cologne']
        assert session.get.call_args[0][0] == (
            'https://geo.example.org/search?format=xml&q=cologne'
        )

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        session = MagicMock()
        session.get = MagicMock(return_value=make_response(503))
        with pytest.raises(RuntimeError):
            await search_places(session, 'cologne')

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        session = MagicMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError('offline'))
        with pytest.raises(RuntimeError, match='cologne'):
            await search_places(session, 'cologne')


class TestApplySearchResult:
    """Recentering the view on a chosen result."""

    @pytest.fixture
    def viewport(self):
        registry = TileServerRegistry([TileServer('https://t.example.org/', 19)])
        return MapViewport(registry, zoom=5, position=(0, 0), size=(320, 200))

    def test_uses_result_zoom(self, viewport):
        result = SearchResult(lat=50.1, lon=6.2, name='Cologne', zoom=10)
        apply_search_result(viewport, result)
        assert viewport.zoom == 10
        assert viewport.center_position() == viewport.compute_position(6.2, 50.1)

    @pytest.mark.parametrize('zoom', [0, 20, 99])
    def test_out_of_range_zoom_uses_default(self, viewport, zoom):
        result = SearchResult(lat=50.1, lon=6.2, name='Cologne', zoom=zoom)
        apply_search_result(viewport, result)
        assert viewport.zoom == 8

    def test_result_zoom(self):
        assert result_zoom(SearchResult(zoom=17), 17) == 17
        assert result_zoom(SearchResult(zoom=18), 17) == 8


class TestFormatting:
    def test_label_with_category(self):
        result = SearchResult(name='Köln, Nordrhein-Westfalen, Deutschland', category='place')
        assert format_result_label(result) == 'Köln, [place]'

    def test_label_without_category_drops_trailing_comma(self):
        result = SearchResult(name='Köln, Deutschland')
        assert format_result_label(result) == 'Köln'

    def test_description_strips_brackets(self):
        result = SearchResult(name='Cologne', description='City [de] on the Rhine')
        assert format_result_description(result) == 'City  on the Rhine'

    def test_description_falls_back_to_name(self):
        assert format_result_description(SearchResult(name='Cologne')) == 'Cologne'
