"""Background tile downloads.

TileFetcher runs an asyncio event loop in a daemon thread. The render thread
calls ``request`` on cache misses and later ``drain`` to move finished images
into the TileCache, so the cache is only ever touched from one thread.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import queue
import threading
from http import HTTPStatus
from io import BytesIO
from typing import TYPE_CHECKING, TypeVar

import aiohttp
from PIL import Image, UnidentifiedImageError

from infrastructure.http.client import make_http_session
from shared.constants import (
    ASYNC_MAX_CONCURRENCY,
    HTTP_5XX_MAX,
    HTTP_5XX_MIN,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    USER_AGENT,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine
    from typing import Any

    from tiles.address import TileAddress
    from tiles.cache import TileCache

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def fetch_tile_image(
    client: aiohttp.ClientSession,
    url: str,
    *,
    async_timeout: float = HTTP_TIMEOUT_DEFAULT,
    retries: int = HTTP_RETRIES_DEFAULT,
    backoff: float = HTTP_BACKOFF_FACTOR,
) -> Image.Image:
    """
    Загружает один тайл и возвращает PIL.Image (RGBA).

    - 404 и прочие 4xx: сразу ошибка, без повторов.
    - 429/5xx и сетевые ошибки: до ``retries`` попыток с экспоненциальной задержкой.
    - Ошибка декодирования: сразу ошибка.
    """
    last_exc: Exception | None = None
    for attempt in range(max(1, retries)):
        try:
            timeout = aiohttp.ClientTimeout(total=async_timeout)
            async with client.get(url, timeout=timeout) as resp:
                sc = resp.status
                if sc == HTTPStatus.OK:
                    data = await resp.read()
                    try:
                        img = Image.open(BytesIO(data))
                        img.load()
                    except (UnidentifiedImageError, OSError) as e:
                        msg = f'Cannot decode tile {url}: {e}'
                        raise ValueError(msg) from e
                    return img.convert('RGBA')
                is_rate_or_5xx = (sc == HTTPStatus.TOO_MANY_REQUESTS) or (
                    HTTP_5XX_MIN <= sc < HTTP_5XX_MAX
                )
                if not is_rate_or_5xx:
                    msg = f'HTTP {sc} for tile {url}'
                    raise LookupError(msg)
                last_exc = RuntimeError(f'HTTP {sc} for tile {url}')
        except (TimeoutError, aiohttp.ClientError) as e:
            last_exc = e
        if attempt + 1 < retries:
            await asyncio.sleep(backoff**attempt)
    msg = f'Failed to fetch tile {url}: {last_exc}'
    raise RuntimeError(msg)


class TileFetcher:
    """Asynchronous tile loader with a bounded number of parallel downloads.

    ``get_tile_image(url)`` may be injected (tests, custom transports); by
    default tiles are downloaded with ``fetch_tile_image`` over the fetcher's
    own aiohttp session.
    """

    def __init__(
        self,
        get_tile_image: Callable[[str], Awaitable[Image.Image]] | None = None,
        *,
        concurrency: int = ASYNC_MAX_CONCURRENCY,
        user_agent: str = USER_AGENT,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
    ) -> None:
        self._custom_get = get_tile_image
        self._concurrency = concurrency
        self._user_agent = user_agent
        self._timeout = timeout

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._session: aiohttp.ClientSession | None = None
        self._sem: asyncio.Semaphore | None = None

        self._lock = threading.Lock()
        self._in_flight: set[TileAddress] = set()
        self._futures: set[concurrent.futures.Future] = set()
        self._results: queue.Queue[tuple[TileAddress, Image.Image]] = queue.Queue()
        self._failures = 0

    # --- lifecycle ---------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()
            loop.close()

        self._thread = threading.Thread(target=_run, name='TileFetcher', daemon=True)
        self._loop = loop
        self._thread.start()
        ready.wait()

        async def _init() -> None:
            self._sem = asyncio.Semaphore(self._concurrency)
            self._session = make_http_session(self._user_agent, timeout=self._timeout)

        asyncio.run_coroutine_threadsafe(_init(), loop).result()
        logger.info('TileFetcher started (concurrency=%d)', self._concurrency)

    def close(self, timeout: float | None = 5.0) -> None:
        loop = self._loop
        if loop is None:
            return

        async def _shutdown() -> None:
            if self._session is not None:
                await self._session.close()
                self._session = None

        if loop.is_running():
            try:
                asyncio.run_coroutine_threadsafe(_shutdown(), loop).result(timeout)
            except concurrent.futures.TimeoutError:
                logger.warning('TileFetcher session close timed out')
            loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None:
            self._thread.join(timeout)
        self._loop = None
        self._thread = None
        logger.info('TileFetcher stopped')

    def __enter__(self) -> TileFetcher:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # --- requests ----------------------------------------------------------

    def submit(
        self, factory: Callable[[aiohttp.ClientSession], Coroutine[Any, Any, T]]
    ) -> concurrent.futures.Future[T]:
        """Run ``factory(session)`` on the fetcher loop (probes, searches)."""
        self.start()
        assert self._loop is not None

        async def _call() -> T:
            assert self._session is not None
            return await factory(self._session)

        return asyncio.run_coroutine_threadsafe(_call(), self._loop)

    def request(self, address: TileAddress, url: str) -> bool:
        """Schedule a download unless one for ``address`` is already in flight."""
        with self._lock:
            if address in self._in_flight:
                return False
            self._in_flight.add(address)
        self.start()
        assert self._loop is not None
        future = asyncio.run_coroutine_threadsafe(self._fetch_one(address, url), self._loop)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget_future)
        return True

    def _forget_future(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._futures.discard(future)

    async def _get(self, url: str) -> Image.Image:
        if self._custom_get is not None:
            return await self._custom_get(url)
        assert self._session is not None
        return await fetch_tile_image(self._session, url, async_timeout=self._timeout)

    async def _fetch_one(self, address: TileAddress, url: str) -> None:
        assert self._sem is not None
        try:
            async with self._sem:
                img = await self._get(url)
        except Exception as e:
            # Тайл остаётся промахом и будет запрошен при следующей отрисовке
            with self._lock:
                self._failures += 1
            logger.warning('Tile %s not loaded: %s', address, e)
            with self._lock:
                self._in_flight.discard(address)
        else:
            # Адрес остаётся «в полёте», пока drain() не положит тайл в кэш
            self._results.put((address, img))

    def pending(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def is_pending(self, address: TileAddress) -> bool:
        with self._lock:
            return address in self._in_flight

    @property
    def failures(self) -> int:
        return self._failures

    def wait(self, timeout: float | None = None) -> bool:
        """Block until all scheduled downloads finish. Returns False on timeout."""
        with self._lock:
            futures = list(self._futures)
        if not futures:
            return True
        _done, not_done = concurrent.futures.wait(futures, timeout=timeout)
        return not not_done

    # --- results -----------------------------------------------------------

    def drain(self, cache: TileCache, limit: int | None = None) -> int:
        """Move finished images into ``cache``; returns how many were stored."""
        stored = 0
        while limit is None or stored < limit:
            try:
                address, img = self._results.get_nowait()
            except queue.Empty:
                break
            cache.put(address, img)
            with self._lock:
                self._in_flight.discard(address)
            stored += 1
        if stored:
            logger.debug('Drained %d tile(s) into cache', stored)
        return stored
