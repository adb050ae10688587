"""
Dickerchen - Configuration Management
Supports .env files and runtime configuration for notification scheduling,
Web Push delivery and challenge notifications.
"""

from typing import Dict, Any
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator
from functools import lru_cache


# ============================================
# NOTIFICATION SCHEDULING CONFIGURATION
# ============================================

class NotificationConfig(BaseSettings):
    """
    Reminder scheduling configuration.
    Thresholds for slot filters, send window, batching and jitter.
    """
    daily_goal: int = Field(
        default=100,
        ge=1,
        description="Daily exercise goal per user"
    )
    timezone: str = Field(
        default="Europe/Berlin",
        description="Timezone used to derive local dates and hours"
    )

    # Send window (inclusive hours)
    send_window_start_hour: int = Field(
        default=8,
        ge=0,
        le=23,
        description="First local hour in which notifications may be sent"
    )
    send_window_end_hour: int = Field(
        default=19,
        ge=0,
        le=23,
        description="Last local hour in which notifications may be sent"
    )

    # Slot filters
    afternoon_max_total: int = Field(
        default=50,
        ge=0,
        description="Afternoon reminders go to users strictly below this total"
    )
    evening_min_total: int = Field(
        default=40,
        ge=0,
        description="Lower bound (inclusive) of the evening band"
    )
    evening_max_total: int = Field(
        default=90,
        ge=0,
        description="Upper bound (inclusive) of the evening band"
    )
    close_to_goal_gap: int = Field(
        default=20,
        ge=1,
        description="Users within this many reps of the goal get a close-to-goal nudge"
    )

    # Batching and jitter
    batch_min: int = Field(
        default=3,
        ge=1,
        description="Minimum batch size per cycle"
    )
    batch_max: int = Field(
        default=10,
        ge=1,
        description="Maximum batch size per cycle"
    )
    regular_jitter_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Upper bound of the random delay before a regular send"
    )
    close_to_goal_jitter_seconds: float = Field(
        default=20.0,
        ge=0.0,
        description="Upper bound of the random delay before a close-to-goal send"
    )

    # Background service
    history_retention_days: int = Field(
        default=7,
        ge=1,
        description="Notification history older than this is purged"
    )
    interval_seconds: int = Field(
        default=2 * 60 * 60,
        ge=60,
        description="Period of the in-process reminder timer"
    )
    enable_periodic: bool = Field(
        default=True,
        description="Run the in-process reminder timer"
    )
    secret: str = Field(
        default="",
        description="Bearer token required by the notification trigger endpoints"
    )

    model_config = {
        "env_prefix": "NOTIFY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @model_validator(mode="after")
    def check_ranges(self) -> "NotificationConfig":
        if self.batch_min > self.batch_max:
            raise ValueError("batch_min must not exceed batch_max")
        if self.evening_min_total > self.evening_max_total:
            raise ValueError("evening_min_total must not exceed evening_max_total")
        if self.send_window_start_hour > self.send_window_end_hour:
            raise ValueError("send window must start before it ends")
        return self


# ============================================
# WEB PUSH CONFIGURATION
# ============================================

class PushConfig(BaseSettings):
    """VAPID credentials and Web Push delivery options."""

    public_key: str = Field(
        default="",
        description="VAPID public key handed to browsers"
    )
    private_key: str = Field(
        default="",
        description="VAPID private key used to sign push requests"
    )
    email: str = Field(
        default="mailto:admin@dickerchen.local",
        description="Contact claim sent with every push request"
    )
    ttl: int = Field(
        default=86400,
        ge=0,
        description="Seconds the push service keeps an undelivered message"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Transport timeout for a single push request"
    )
    icon: str = Field(
        default="/icon-192.svg",
        description="Icon and badge path shown with notifications"
    )

    model_config = {
        "env_prefix": "VAPID_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# CHALLENGE NOTIFICATION CONFIGURATION
# ============================================

class ChallengeConfig(BaseSettings):
    """Thresholds for notifications triggered by logged exercise."""

    close_race_gap: int = Field(
        default=20,
        ge=0,
        description="Maximum gap between first and second place for a close race"
    )
    close_race_min_leader_total: int = Field(
        default=50,
        ge=0,
        description="Leader must be above this total before a close race is announced"
    )
    early_bird_start_hour: int = Field(default=5, ge=0, le=23)
    early_bird_end_hour: int = Field(default=9, ge=0, le=23)
    lazy_after_hour: int = Field(
        default=12,
        ge=0,
        le=23,
        description="From this hour on, users still at zero get a wake-up call"
    )

    model_config = {
        "env_prefix": "CHALLENGE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# CACHED CONFIGURATION INSTANCES
# ============================================

@lru_cache()
def get_notification_config() -> NotificationConfig:
    """Get cached notification configuration instance."""
    return NotificationConfig()


@lru_cache()
def get_push_config() -> PushConfig:
    """Get cached push configuration instance."""
    return PushConfig()


@lru_cache()
def get_challenge_config() -> ChallengeConfig:
    """Get cached challenge configuration instance."""
    return ChallengeConfig()


def reload_config():
    """Clear configuration cache and reload from environment."""
    get_notification_config.cache_clear()
    get_push_config.cache_clear()
    get_challenge_config.cache_clear()


# ============================================
# CONFIGURATION SUMMARY
# ============================================

def get_config_summary() -> Dict[str, Any]:
    """
    Get a summary of all configuration values.
    Secrets are reported only as present/absent.
    """
    notify = get_notification_config()
    push = get_push_config()
    challenge = get_challenge_config()

    return {
        "notifications": {
            "daily_goal": notify.daily_goal,
            "timezone": notify.timezone,
            "send_window": f"{notify.send_window_start_hour:02d}:00 - {notify.send_window_end_hour:02d}:59",
            "afternoon_max_total": notify.afternoon_max_total,
            "evening_band": [notify.evening_min_total, notify.evening_max_total],
            "close_to_goal_gap": notify.close_to_goal_gap,
            "batch": [notify.batch_min, notify.batch_max],
            "interval_seconds": notify.interval_seconds,
            "periodic": notify.enable_periodic,
            "has_secret": bool(notify.secret),
        },
        "push": {
            "has_public_key": bool(push.public_key),
            "has_private_key": bool(push.private_key),
            "ttl": push.ttl,
            "timeout_seconds": push.timeout_seconds,
        },
        "challenge": {
            "close_race_gap": challenge.close_race_gap,
            "close_race_min_leader_total": challenge.close_race_min_leader_total,
            "early_bird_hours": [challenge.early_bird_start_hour, challenge.early_bird_end_hour],
            "lazy_after_hour": challenge.lazy_after_hour,
        },
    }
