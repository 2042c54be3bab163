from __future__ import annotations

import ssl

import aiohttp
import certifi

from shared.constants import HTTP_TIMEOUT_DEFAULT, USER_AGENT


def make_http_session(
    user_agent: str = USER_AGENT,
    *,
    timeout: float = HTTP_TIMEOUT_DEFAULT,
    limit: int = 0,
) -> aiohttp.ClientSession:
    """Create an aiohttp session for tile and geocoding requests.

    Must be called from inside the event loop that will use the session.
    OSM tile usage policy requires an identifying User-Agent on every request.
    """
    # Создать SSL-контекст с сертификатами из certifi
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context, limit=limit)
    return aiohttp.ClientSession(
        connector=connector,
        headers={'User-Agent': user_agent},
        timeout=aiohttp.ClientTimeout(total=timeout),
    )
