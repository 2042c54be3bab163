"""Tests for TileServer and TileServerRegistry."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from domain.models import TileServerConfig, ViewerSettings
from tiles.address import TileAddress
from tiles.servers import TileServer, TileServerRegistry


def make_response(status: int) -> MagicMock:
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=b'')
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=None)
    return resp


@pytest.fixture
def servers():
    return [
        TileServer('https://a.example.org/', 18),
        TileServer('https://b.example.org/', 10),
        TileServer('https://c.example.org/', 15),
    ]


class TestTileServer:
    """URL building."""

    def test_tile_url(self):
        server = TileServer('https://tile.openstreetmap.org/', 19)
        assert server.tile_url(3, 4, 5) == 'https://tile.openstreetmap.org/3/4/5.png'

    @pytest.mark.parametrize('max_zoom', [0, -1, 23])
    def test_rejects_out_of_range_max_zoom(self, max_zoom):
        with pytest.raises(ValueError, match='max_zoom'):
            TileServer('https://t.example.org/', max_zoom)

    def test_url_for_address(self):
        server = TileServer('https://t.example.org/', 19)
        address = TileAddress(server.key, 7, 8, 9)
        assert server.url_for(address) == 'https://t.example.org/9/7/8.png'

    def test_probe_url(self):
        server = TileServer('https://t.example.org/', 19)
        assert server.probe_url == 'https://t.example.org/1/1/1.png'

    def test_not_broken_by_default(self):
        assert TileServer('https://t.example.org/', 19).broken is False


class TestRegistry:
    """Activation and cycling."""

    def test_first_is_active(self, servers):
        registry = TileServerRegistry(servers)
        assert registry.active is servers[0]

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            TileServerRegistry([])

    def test_activate(self, servers):
        registry = TileServerRegistry(servers)
        registry.activate(servers[2])
        assert registry.active is servers[2]

    def test_activate_unknown_raises(self, servers):
        registry = TileServerRegistry(servers)
        with pytest.raises(ValueError):
            registry.activate(TileServer('https://x.example.org/', 5))

    def test_next_wraps_around(self, servers):
        registry = TileServerRegistry(servers)
        registry.activate(servers[2])
        assert registry.next() is servers[0]

    def test_next_follows_list_order(self, servers):
        registry = TileServerRegistry(servers)
        assert registry.next() is servers[1]

    def test_next_none_when_active_unlisted(self, servers):
        registry = TileServerRegistry(servers)
        registry._active = TileServer('https://x.example.org/', 5)
        assert registry.next() is None

    def test_default_registry(self):
        registry = TileServerRegistry.default()
        assert registry.active.url == 'https://tile.openstreetmap.org/'
        assert len(registry) == 2

    def test_from_settings(self):
        settings = ViewerSettings(
            servers=[
                TileServerConfig(url='https://a.example.org/', max_zoom=12),
                TileServerConfig(url='https://b.example.org/', max_zoom=9),
            ],
        )
        registry = TileServerRegistry.from_settings(settings)
        assert [s.max_zoom for s in registry] == [12, 9]


class TestProbe:
    """Liveness probe."""

    @pytest.mark.asyncio
    async def test_ok_keeps_server_healthy(self, servers):
        session = MagicMock()
        session.get = MagicMock(return_value=make_response(200))
        registry = TileServerRegistry(servers)

        assert await registry.probe(servers[0], session) is True
        assert servers[0].broken is False
        session.get.assert_called_once()
        assert session.get.call_args[0][0] == 'https://a.example.org/1/1/1.png'

    @pytest.mark.asyncio
    async def test_http_error_marks_broken(self, servers):
        session = MagicMock()
        session.get = MagicMock(return_value=make_response(503))
        registry = TileServerRegistry(servers)

        assert await registry.probe(servers[1], session) is False
        assert servers[1].broken is True
        assert len(registry) == 3

    @pytest.mark.asyncio
    async def test_connection_error_marks_broken(self, servers):
        session = MagicMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError('down'))
        registry = TileServerRegistry(servers)

        assert await registry.probe(servers[0], session) is False
        assert servers[0].broken is True

    @pytest.mark.asyncio
    async def test_probe_all(self, servers):
        responses = {
            'https://a.example.org/1/1/1.png': make_response(200),
            'https://b.example.org/1/1/1.png': make_response(404),
            'https://c.example.org/1/1/1.png': make_response(200),
        }
        session = MagicMock()
        session.get = MagicMock(side_effect=lambda url, **kw: responses[url])
        registry = TileServerRegistry(servers)

        result = await registry.probe_all(session)

        assert result == {
            'https://a.example.org/': True,
            'https://b.example.org/': False,
            'https://c.example.org/': True,
        }
        assert [s.broken for s in servers] == [False, True, False]
