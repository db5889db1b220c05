"""
Configuration module for the reminders backend.

Provides centralized configuration for:
- Web Push (VAPID) credentials
- Reminder scanning policy (interval, dedup window, timezone, locale)
- Scheduled trigger secret and rate limiting
"""

from backend.src.config.settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
