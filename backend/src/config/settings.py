"""
Application settings configuration for the reminders backend.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache
from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment Variables:
        VAPID_PUBLIC_KEY: Web Push VAPID public key (Base64url-encoded)
        VAPID_PRIVATE_KEY: Web Push VAPID private key (Base64url-encoded)
        VAPID_SUBJECT: VAPID subject identifier (mailto: or https: URL)
        PUSH_TTL_SECONDS: Time-to-live handed to the push service (default: 86400)
        PUSH_MAX_WORKERS: Concurrent deliveries per notification (default: 8)
        REMINDER_INTERVAL_SECONDS: Delay between scans of a session (default: 3600)
        REMINDER_DEDUP_HOURS: Lookback window for duplicate reminders (default: 24)
        REMINDER_LEAD_HOURS: How far ahead a task counts as "due soon" (default: 24)
        REMINDER_OPEN_STATUSES: Comma-separated task statuses eligible for reminders
        REMINDER_TIMEZONE: IANA zone used to read due dates as wall-clock time
        REMINDER_LOCALE: Message catalog for reminder text (en, pt-BR)
        CRON_SECRET: Bearer secret for the scheduled run-all endpoint
        RATE_LIMIT_STORAGE_URI: Storage backend URI for rate limiting (default: "memory://")
    """

    # VAPID settings for Web Push notifications
    vapid_public_key: str = Field(
        default="",
        validation_alias="VAPID_PUBLIC_KEY",
        description="Base64url-encoded VAPID public key for Web Push subscriptions"
    )

    vapid_private_key: str = Field(
        default="",
        validation_alias="VAPID_PRIVATE_KEY",
        description="Base64url-encoded VAPID private key for signing push messages"
    )

    vapid_subject: str = Field(
        default="",
        validation_alias="VAPID_SUBJECT",
        description="VAPID subject (mailto: or https: URL identifying the push sender)"
    )

    push_ttl_seconds: int = Field(
        default=86400,
        validation_alias="PUSH_TTL_SECONDS",
        ge=0,
    )

    push_max_workers: int = Field(
        default=8,
        validation_alias="PUSH_MAX_WORKERS",
        ge=1,
        le=64,
    )

    # Reminder scanning
    reminder_interval_seconds: int = Field(
        default=3600,
        validation_alias="REMINDER_INTERVAL_SECONDS",
        ge=1,
    )

    reminder_dedup_hours: int = Field(
        default=24,
        validation_alias="REMINDER_DEDUP_HOURS",
        ge=1,
    )

    reminder_lead_hours: int = Field(
        default=24,
        validation_alias="REMINDER_LEAD_HOURS",
        ge=1,
    )

    reminder_open_statuses: str = Field(
        default="todo,in_progress",
        validation_alias="REMINDER_OPEN_STATUSES",
        description="Comma-separated task statuses that are reminder candidates"
    )

    reminder_timezone: str = Field(
        default="UTC",
        validation_alias="REMINDER_TIMEZONE",
        description="IANA timezone identifier (e.g., 'America/Sao_Paulo')"
    )

    reminder_locale: str = Field(
        default="en",
        validation_alias="REMINDER_LOCALE",
    )

    # Scheduled (cron) trigger
    cron_secret: str = Field(
        default="",
        validation_alias="CRON_SECRET",
        description="Bearer secret required by POST /api/reminders/run. Empty = endpoint disabled."
    )

    # Rate limiting storage backend
    # "memory://" is in-process only; use "redis://host:6379" for multiple workers
    rate_limit_storage_uri: str = Field(
        default="memory://",
        validation_alias="RATE_LIMIT_STORAGE_URI",
        description="Storage backend URI for rate limiting counters"
    )

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True

    @field_validator("reminder_timezone")
    @classmethod
    def validate_reminder_timezone(cls, v: str) -> str:
        """Reject timezone names unknown to the IANA database."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def vapid_configured(self) -> bool:
        """Check if VAPID keys are properly configured for Web Push."""
        return bool(self.vapid_public_key and self.vapid_private_key and self.vapid_subject)

    @property
    def vapid_claims(self) -> Dict[str, str]:
        """VAPID claims dict passed to pywebpush."""
        return {"sub": self.vapid_subject} if self.vapid_subject else {}

    @property
    def open_statuses(self) -> List[str]:
        """
        Get the reminder-eligible task statuses.

        Returns:
            List of status strings (e.g., ["todo", "in_progress"])
        """
        return [s.strip().lower() for s in self.reminder_open_statuses.split(",") if s.strip()]


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings instance.

    Returns:
        AppSettings: Configured application settings from environment
    """
    return AppSettings()
