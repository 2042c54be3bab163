from pydantic import BaseModel, Field, field_validator, model_validator

from shared.constants import (
    ALLOWED_TILE_SIZES,
    ANIMATION_DURATION_MS,
    ANIMATION_FPS,
    ASYNC_MAX_CONCURRENCY,
    CACHE_SIZE,
    DEFAULT_MAP_POSITION,
    DEFAULT_TILE_SERVERS,
    DEFAULT_ZOOM,
    HTTP_TIMEOUT_DEFAULT,
    MAX_ZOOM_LIMIT,
    MIN_ZOOM,
    NAMEFINDER_URL,
    SLOW_PAINT_THRESHOLD_MS,
    TILE_SIZE,
    USER_AGENT,
)


class TileServerConfig(BaseModel):
    """Тайловый сервер из профиля: базовый URL и максимальный зум."""

    url: str
    max_zoom: int = 18

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(('http://', 'https://')):
            msg = f'URL тайлового сервера должен начинаться с http(s)://: {v!r}'
            raise ValueError(msg)
        if not v.endswith('/'):
            msg = f'URL тайлового сервера должен заканчиваться на "/": {v!r}'
            raise ValueError(msg)
        return v

    @field_validator('max_zoom')
    @classmethod
    def validate_max_zoom(cls, v: int) -> int:
        if not (MIN_ZOOM <= v <= MAX_ZOOM_LIMIT):
            msg = f'max_zoom должен быть в диапазоне [{MIN_ZOOM}, {MAX_ZOOM_LIMIT}]'
            raise ValueError(msg)
        return v


def default_servers() -> list[TileServerConfig]:
    return [TileServerConfig(url=url, max_zoom=z) for url, z in DEFAULT_TILE_SERVERS]


class ViewerSettings(BaseModel):
    """
    Настройки просмотрщика, загружаемые из TOML-профиля.
    """

    model_config = {
        'extra': 'ignore',  # игнорировать лишние поля из профилей
    }

    # Тайловые серверы в порядке переключения; первый активен при запуске
    servers: list[TileServerConfig] = Field(default_factory=default_servers)

    # Ёмкость LRU-кэша (тайлов)
    cache_capacity: int = CACHE_SIZE
    tile_size: int = TILE_SIZE

    # Анимация масштабирования
    use_animations: bool = True
    animation_fps: int = ANIMATION_FPS
    animation_duration_ms: int = ANIMATION_DURATION_MS
    slow_paint_threshold_ms: int = SLOW_PAINT_THRESHOLD_MS

    # Стартовое положение
    initial_zoom: int = DEFAULT_ZOOM
    initial_position: tuple[int, int] = DEFAULT_MAP_POSITION

    # Сеть
    namefinder_url: str = NAMEFINDER_URL
    user_agent: str = USER_AGENT
    fetch_concurrency: int = ASYNC_MAX_CONCURRENCY
    fetch_timeout_s: float = HTTP_TIMEOUT_DEFAULT

    show_overlay: bool = False

    @field_validator(
        'cache_capacity',
        'animation_fps',
        'animation_duration_ms',
        'slow_paint_threshold_ms',
        'fetch_concurrency',
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            msg = 'Значение должно быть положительным'
            raise ValueError(msg)
        return v

    @field_validator('fetch_timeout_s')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            msg = 'Таймаут должен быть положительным'
            raise ValueError(msg)
        return v

    @field_validator('tile_size')
    @classmethod
    def validate_tile_size(cls, v: int) -> int:
        if v not in ALLOWED_TILE_SIZES:
            msg = f'Размер тайла должен быть одним из {ALLOWED_TILE_SIZES}'
            raise ValueError(msg)
        return v

    @field_validator('servers')
    @classmethod
    def validate_servers(cls, v: list[TileServerConfig]) -> list[TileServerConfig]:
        if not v:
            msg = 'Нужен хотя бы один тайловый сервер'
            raise ValueError(msg)
        return v

    @model_validator(mode='after')
    def validate_initial_zoom(self) -> 'ViewerSettings':
        max_zoom = self.servers[0].max_zoom
        if not (MIN_ZOOM <= self.initial_zoom <= max_zoom):
            msg = (
                f'initial_zoom должен быть в диапазоне [{MIN_ZOOM}, {max_zoom}] '
                'для первого сервера'
            )
            raise ValueError(msg)
        return self


class SearchResult(BaseModel):
    """Одна запись ответа геокодера."""

    type: str = ''
    lat: float = 0.0
    lon: float = 0.0
    name: str = ''
    zoom: int = 0
    description: str = ''
    category: str = ''
