from enum import Enum

APP_NAME = 'TileViewer'
APP_VERSION = '1.0.0'

# Базовый размер тайла Web Mercator (пикселей)
TILE_SIZE = 256

# Допустимые размеры тайла для профилей
ALLOWED_TILE_SIZES = (256, 512)

# Число тайлов в LRU-кэше декодированных изображений
CACHE_SIZE = 256

# Минимальный уровень приближения (уровень 0 не используется)
MIN_ZOOM = 1

# Абсолютный предел зума для конфигурации серверов
MAX_ZOOM_LIMIT = 22

# Стартовые зум и позиция (верхний левый угол окна в координатах карты)
DEFAULT_ZOOM = 6
DEFAULT_MAP_POSITION = (8282, 5179)

# Зум по умолчанию для результатов поиска без корректного зума
DEFAULT_SEARCH_ZOOM = 8

# Частота кадров и длительность анимации масштабирования
ANIMATION_FPS = 15
ANIMATION_DURATION_MS = 500

# Если кадр рисуется дольше порога, понижаем качество интерполяции
SLOW_PAINT_THRESHOLD_MS = 500

# Шаг сдвига карты кнопками/клавишами (px)
MOVE_STEP_PX = 32

# Размер виджета по умолчанию (px)
PREFERRED_WIDTH = 320
PREFERRED_HEIGHT = 200

# --- Индикатор точки масштабирования (прямоугольник вокруг pivot)
PIVOT_RECT_WIDTH = 80
PIVOT_RECT_HEIGHT = 60
# Базовый оттенок серого и прирост к концу анимации
PIVOT_SHADE_BASE = 0x80
PIVOT_SHADE_RANGE = 0x60

# Цвет фона под тайлами (RGB)
BACKGROUND_COLOR = (0xC0, 0xC0, 0xC0)

# Широта, за которой проекция Web Mercator теряет смысл (градусы)
MERCATOR_MAX_LAT_DEG = 85.05112878
WORLD_LNG_SPAN_DEG = 360.0
WORLD_LNG_HALF_SPAN_DEG = 180.0
WORLD_LAT_MAX_DEG = 90.0

# Известные тайловые серверы: (URL с завершающим '/', максимальный зум)
DEFAULT_TILE_SERVERS: tuple[tuple[str, int], ...] = (
    ('https://tile.openstreetmap.org/', 19),
    ('https://a.tile.opentopomap.org/', 17),
)

# Тайл, который запрашивается для проверки доступности сервера (z, x, y)
PROBE_TILE = (1, 1, 1)

# Сервис геокодирования (Nominatim)
NAMEFINDER_URL = 'https://nominatim.openstreetmap.org/search'

# Политика OSM требует осмысленный User-Agent
USER_AGENT = 'TileViewer/1.0 (+https://github.com/tileviewer/tileviewer)'

# Максимальное число параллельных загрузок тайлов
ASYNC_MAX_CONCURRENCY = 8

# Таймауты HTTP (секунды)
HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_PROBE_TIMEOUT = 10.0
HTTP_SEARCH_TIMEOUT = 15.0

# Интервал опроса очереди готовых тайлов из GUI-потока (мс)
FETCH_POLL_INTERVAL_MS = 50

HTTP_OK = 200

PROFILES_DIR = 'configs/profiles'
DEFAULT_PROFILE = 'default'

# Availability flags for optional libs
PSUTIL_AVAILABLE = True

VIEW_EVENT_ZOOM_CHANGED = 'ZOOM_CHANGED'
VIEW_EVENT_POSITION_CHANGED = 'POSITION_CHANGED'
VIEW_EVENT_SERVER_CHANGED = 'SERVER_CHANGED'
VIEW_EVENT_SERVER_UNREACHABLE = 'SERVER_UNREACHABLE'
VIEW_EVENT_REPAINT = 'REPAINT'


class AnimationKind(str, Enum):
    ZOOM_IN = 'ZOOM_IN'
    ZOOM_OUT = 'ZOOM_OUT'


class ResamplingQuality(str, Enum):
    """Качество интерполяции масштабированного слоя во время анимации."""

    BILINEAR = 'BILINEAR'
    NEAREST = 'NEAREST'


class Direction(str, Enum):
    UP = 'UP'
    DOWN = 'DOWN'
    LEFT = 'LEFT'
    RIGHT = 'RIGHT'


# Смещение (dx, dy) для каждого направления, в шагах MOVE_STEP_PX
DIRECTION_STEPS: dict[Direction, tuple[int, int]] = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}


class ViewEvent(str, Enum):
    """События, которые генерирует состояние вида карты."""

    ZOOM_CHANGED = VIEW_EVENT_ZOOM_CHANGED
    POSITION_CHANGED = VIEW_EVENT_POSITION_CHANGED
    SERVER_CHANGED = VIEW_EVENT_SERVER_CHANGED
    SERVER_UNREACHABLE = VIEW_EVENT_SERVER_UNREACHABLE
    REPAINT = VIEW_EVENT_REPAINT


ABOUT_MSG = (
    'TileViewer - minimal OpenStreetMap tile viewer\n\n'
    'Tiles and place search are provided by OpenStreetMap and associated '
    'projects. Please be conscious of the traffic this viewer creates on '
    'the tile servers and support the projects at '
    'https://www.openstreetmap.org/.'
)

# Повторы одного запроса тайла при 429/5xx и множитель задержки
HTTP_RETRIES_DEFAULT = 2
HTTP_BACKOFF_FACTOR = 1.6
HTTP_5XX_MIN = 500
HTTP_5XX_MAX = 600
