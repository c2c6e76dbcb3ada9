"""
Centralized configuration with environment variable overrides.

Business identity, booking policy constants, reminder cadence and the
messaging gateway are all configurable here. Availability rules that the
shop edits at runtime (date and time settings) live in storage instead.
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

    name: str = os.getenv("BUSINESS_NAME", "PetCare Pro")
    address: str = os.getenv("BUSINESS_ADDRESS", "Rua Example, 123 - Centro")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/Sao_Paulo")
    hours_weekday: str = os.getenv("BUSINESS_HOURS_WEEKDAY", "Seg-Sex: 8h às 18h")
    hours_saturday: str = os.getenv("BUSINESS_HOURS_SATURDAY", "Sábado: 8h às 12h")


@dataclass(frozen=True)
class BookingConfig:
    """Booking policy: lead time, fallbacks and dialogue constants."""

    lead_time_minutes: int = _safe_int("BOOKING_LEAD_TIME_MINUTES", "30")
    default_service_duration: int = _safe_int("DEFAULT_SERVICE_DURATION", "60")
    date_scan_horizon_days: int = _safe_int("DATE_SCAN_HORIZON_DAYS", "60")
    handoff_pause_minutes: int = _safe_int("HANDOFF_PAUSE_MINUTES", "60")
    manual_date_option: int = _safe_int("MANUAL_DATE_OPTION", "6")


@dataclass(frozen=True)
class ReminderConfig:
    """Reminder trigger cadence."""

    default_interval_hours: int = _safe_int("REMINDER_INTERVAL_HOURS", "24")
    check_interval_seconds: float = _safe_float("REMINDER_CHECK_INTERVAL", "60")
    interval_cache_seconds: float = _safe_float("REMINDER_INTERVAL_CACHE", "3600")


@dataclass(frozen=True)
class MessagingConfig:
    """WhatsApp gateway (Evolution API) and internal webhook settings."""

    evolution_api_url: str = os.getenv("EVOLUTION_API_URL", "http://localhost:8080")
    evolution_instance: str = os.getenv("EVOLUTION_INSTANCE", "petcare")
    evolution_api_key: str = os.getenv("EVOLUTION_API_KEY", "")
    country_code: str = os.getenv("PHONE_COUNTRY_CODE", "55")
    send_delay_ms: int = _safe_int("MESSAGE_SEND_DELAY_MS", "1000")
    request_timeout_sec: float = _safe_float("MESSAGING_TIMEOUT", "10.0")
    cancellation_webhook_url: str = os.getenv(
        "CANCELLATION_WEBHOOK_URL", "http://localhost:3333/webhook/internal"
    )


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    reminders: ReminderConfig = field(default_factory=ReminderConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    try:
        ZoneInfo(config.business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"BUSINESS_TIMEZONE is not a known timezone: {config.business.timezone!r}"
        ) from None

    if config.booking.lead_time_minutes < 0:
        raise ValueError(
            f"BOOKING_LEAD_TIME_MINUTES must be >= 0, got {config.booking.lead_time_minutes}"
        )

    for name, value in [
        ("DEFAULT_SERVICE_DURATION", config.booking.default_service_duration),
        ("DATE_SCAN_HORIZON_DAYS", config.booking.date_scan_horizon_days),
        ("HANDOFF_PAUSE_MINUTES", config.booking.handoff_pause_minutes),
        ("REMINDER_INTERVAL_HOURS", config.reminders.default_interval_hours),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    if config.booking.manual_date_option < 2:
        raise ValueError(
            f"MANUAL_DATE_OPTION must be >= 2, got {config.booking.manual_date_option}"
        )
    if config.reminders.check_interval_seconds <= 0:
        raise ValueError(
            "REMINDER_CHECK_INTERVAL must be > 0, "
            f"got {config.reminders.check_interval_seconds}"
        )
    if config.messaging.request_timeout_sec <= 0:
        raise ValueError(
            f"MESSAGING_TIMEOUT must be > 0, got {config.messaging.request_timeout_sec}"
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
