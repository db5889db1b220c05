"""
Shared slowapi rate limiter.

Routers decorate endpoints with @limiter.limit(...); main.py registers the
limiter on app.state together with the RateLimitExceeded handler.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.src.config.settings import get_settings


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_settings().rate_limit_storage_uri,
)
