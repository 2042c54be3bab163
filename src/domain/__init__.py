"""Domain layer - settings models and profiles."""
from domain.models import SearchResult, TileServerConfig, ViewerSettings
from domain.profiles import (
    delete_profile,
    ensure_profiles_dir,
    list_profiles,
    load_profile,
    save_profile,
)

__all__ = [
    'SearchResult',
    'TileServerConfig',
    'ViewerSettings',
    'delete_profile',
    'ensure_profiles_dir',
    'list_profiles',
    'load_profile',
    'save_profile',
]
