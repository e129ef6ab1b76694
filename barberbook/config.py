"""
Centralized configuration with environment variable overrides.

All reservation timings, retry thresholds, and backend endpoints are
configurable here. Nothing is hardcoded in the reservation or gateway logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from barberbook.logging_context import SessionIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ("en", "tr", "ar")


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
class ReservationConfig:
    """Slot grid, past-buffer and compensation retry settings."""

    default_slot_minutes: int = _safe_int("DEFAULT_SLOT_MINUTES", "30")
    past_buffer_minutes: int = _safe_int("PAST_BUFFER_MINUTES", "15")
    compensation_max_attempts: int = _safe_int("COMPENSATION_MAX_ATTEMPTS", "3")
    compensation_backoff_sec: float = _safe_float("COMPENSATION_BACKOFF_SEC", "0.2")
    compensation_backoff_max_sec: float = _safe_float("COMPENSATION_BACKOFF_MAX_SEC", "2.0")


@dataclass(frozen=True)
class BackendConfig:
    """Hosted backend (cloud functions) endpoints."""

    functions_base_url: str = os.getenv(
        "CLOUD_FUNCTIONS_URL", "http://localhost:5001/barberbook/us-central1"
    )
    request_timeout_sec: float = _safe_float("REQUEST_TIMEOUT_SEC", "10.0")


@dataclass(frozen=True)
class RegistrationConfig:
    """Employee self-registration token settings."""

    token_ttl_hours: int = _safe_int("REGISTRATION_TOKEN_TTL_HOURS", "72")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    reservation: ReservationConfig = field(default_factory=ReservationConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    registration: RegistrationConfig = field(default_factory=RegistrationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "barberbook")
    default_language: str = os.getenv("DEFAULT_LANGUAGE", "en")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    reservation = config.reservation
    if not 5 <= reservation.default_slot_minutes <= 240:
        raise ValueError(
            "DEFAULT_SLOT_MINUTES must be between 5 and 240, "
            f"got {reservation.default_slot_minutes}"
        )
    if reservation.past_buffer_minutes < 0:
        raise ValueError(
            f"PAST_BUFFER_MINUTES must be >= 0, got {reservation.past_buffer_minutes}"
        )
    if reservation.compensation_max_attempts < 1:
        raise ValueError(
            "COMPENSATION_MAX_ATTEMPTS must be >= 1, "
            f"got {reservation.compensation_max_attempts}"
        )
    if reservation.compensation_backoff_sec < 0:
        raise ValueError(
            "COMPENSATION_BACKOFF_SEC must be >= 0, "
            f"got {reservation.compensation_backoff_sec}"
        )
    if reservation.compensation_backoff_max_sec < reservation.compensation_backoff_sec:
        raise ValueError(
            "COMPENSATION_BACKOFF_MAX_SEC must be >= COMPENSATION_BACKOFF_SEC, "
            f"got {reservation.compensation_backoff_max_sec}"
        )
    if config.backend.request_timeout_sec <= 0:
        raise ValueError(
            f"REQUEST_TIMEOUT_SEC must be > 0, got {config.backend.request_timeout_sec}"
        )
    if not config.backend.functions_base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"CLOUD_FUNCTIONS_URL must be an http(s) URL, got {config.backend.functions_base_url!r}"
        )
    if config.registration.token_ttl_hours < 1:
        raise ValueError(
            "REGISTRATION_TOKEN_TTL_HOURS must be >= 1, "
            f"got {config.registration.token_ttl_hours}"
        )
    if config.default_language not in SUPPORTED_LANGUAGES:
        raise ValueError(
            f"DEFAULT_LANGUAGE must be one of {SUPPORTED_LANGUAGES}, "
            f"got {config.default_language!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
