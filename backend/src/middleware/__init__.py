"""
Middleware components for the reminders backend.

This module provides:
- require_user: FastAPI dependency resolving the authenticated user id
- require_cron_secret: FastAPI dependency guarding scheduled endpoints
"""

from backend.src.middleware.auth import require_user, require_cron_secret

__all__ = [
    "require_user",
    "require_cron_secret",
]
