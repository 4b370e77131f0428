"""
Centralized configuration with environment variable overrides.

Business timezone, slot granularity, per-channel timeouts and reminder
lead times are configurable here. Nothing is hardcoded in scheduling or
notification logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "BarberShot")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/Guayaquil")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class NotificationConfig:
    """Channel timeouts and sender identities."""

    email_timeout_seconds: float = _safe_float("EMAIL_TIMEOUT_SECONDS", "10.0")
    push_timeout_seconds: float = _safe_float("PUSH_TIMEOUT_SECONDS", "5.0")
    calendar_timeout_seconds: float = _safe_float("CALENDAR_TIMEOUT_SECONDS", "10.0")
    email_from: str = os.getenv("EMAIL_FROM", "citas@barbershot.example")
    smtp_host: str = os.getenv("SMTP_HOST", "localhost")
    smtp_port: int = _safe_int("SMTP_PORT", "25")
    calendar_id: str = os.getenv("CALENDAR_ID", "primary")


@dataclass(frozen=True)
class ReminderConfig:
    """Reminder lead times and trigger cadence."""

    day_before_hours: float = _safe_float("REMINDER_DAY_BEFORE_HOURS", "24")
    two_hours_hours: float = _safe_float("REMINDER_TWO_HOURS_HOURS", "2")
    poll_seconds: float = _safe_float("REMINDER_POLL_SECONDS", "300")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    try:
        ZoneInfo(config.business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"BUSINESS_TIMEZONE is not a known timezone: {config.business.timezone!r}"
        ) from None
    if config.business.slot_step_minutes < 1:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 1, got {config.business.slot_step_minutes}"
        )

    for timeout_name, timeout_value in [
        ("EMAIL_TIMEOUT_SECONDS", config.notifications.email_timeout_seconds),
        ("PUSH_TIMEOUT_SECONDS", config.notifications.push_timeout_seconds),
        ("CALENDAR_TIMEOUT_SECONDS", config.notifications.calendar_timeout_seconds),
    ]:
        if timeout_value <= 0:
            raise ValueError(f"{timeout_name} must be > 0, got {timeout_value}")

    if not 1 <= config.notifications.smtp_port <= 65535:
        raise ValueError(
            f"SMTP_PORT must be between 1 and 65535, got {config.notifications.smtp_port}"
        )

    if config.reminders.two_hours_hours <= 0:
        raise ValueError(
            f"REMINDER_TWO_HOURS_HOURS must be > 0, got {config.reminders.two_hours_hours}"
        )
    if config.reminders.day_before_hours <= config.reminders.two_hours_hours:
        raise ValueError(
            "REMINDER_DAY_BEFORE_HOURS must be greater than REMINDER_TWO_HOURS_HOURS, "
            f"got {config.reminders.day_before_hours} <= {config.reminders.two_hours_hours}"
        )
    if config.reminders.poll_seconds <= 0:
        raise ValueError(
            f"REMINDER_POLL_SECONDS must be > 0, got {config.reminders.poll_seconds}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
