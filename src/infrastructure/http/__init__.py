"""HTTP client infrastructure."""
from infrastructure.http.client import make_http_session

__all__ = [
    'make_http_session',
]
