import logging
import os
from pathlib import Path

import tomlkit

from domain.models import ViewerSettings
from shared.constants import DEFAULT_PROFILE, PROFILES_DIR

logger = logging.getLogger(__name__)

APP_DIR_NAME = 'TileViewer'


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) If <project_root>/configs/profiles exists, use it (run-from-repo setups).
    2) Otherwise, fall back to user APPDATA directory: %APPDATA%/TileViewer/configs/profiles
       or ~/AppData/Roaming/TileViewer/configs/profiles when APPDATA is not set.
    """
    project_root = Path(__file__).resolve().parent.parent.parent
    local_profiles = project_root / PROFILES_DIR
    if local_profiles.exists():
        return local_profiles

    return (
        Path(os.getenv('APPDATA') or (Path.home() / 'AppData' / 'Roaming'))
        / APP_DIR_NAME
        / PROFILES_DIR
    )


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Список имён профилей без расширения."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name: str) -> Path:
    """Путь к файлу профиля по имени."""
    return ensure_profiles_dir() / f'{name}.toml'


def load_profile(name_or_path: str = DEFAULT_PROFILE) -> ViewerSettings:
    """
    Загрузка и валидация профиля TOML -> ViewerSettings.

    Поддерживает как имя профиля (без .toml) из каталога profiles,
    так и абсолютный/относительный путь до TOML файла.
    Ошибки значений поднимаются как pydantic.ValidationError.
    """
    p = Path(name_or_path)
    path = (
        p if p.suffix.lower() == '.toml' and p.exists() else profile_path(name_or_path)
    )
    if not path.exists():
        msg = f'Профиль не найден: {path}'
        raise FileNotFoundError(msg)
    text = path.read_text(encoding='utf-8')
    data = tomlkit.parse(text).unwrap()
    settings = ViewerSettings.model_validate(data)
    logger.info(
        'Profile %s loaded: %d tile server(s), cache=%d',
        path.name,
        len(settings.servers),
        settings.cache_capacity,
    )
    return settings


def save_profile(name: str, settings: ViewerSettings) -> Path:
    """Сохранение профиля в TOML (без атомарности и бэкапов)."""
    path = profile_path(name)
    data = settings.model_dump(mode='json')
    # Массив таблиц [[servers]] должен идти после всех скалярных ключей
    data['servers'] = data.pop('servers')
    text = tomlkit.dumps(data)
    path.write_text(text, encoding='utf-8')
    logger.info('Profile saved: %s', path)
    return path


def delete_profile(name: str) -> None:
    """Удаление файла профиля, если он существует."""
    path = profile_path(name)
    if path.exists():
        path.unlink()
        logger.info('Profile deleted: %s', path)
