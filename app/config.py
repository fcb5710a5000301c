"""Configuration management for the signature image service."""

import logging
from functools import lru_cache
from typing import Optional, TypeVar

from dotenv import load_dotenv
from pydantic import Field, HttpUrl, TypeAdapter, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


T = TypeVar("T")


def _warn_invalid(field_name: str, raw_value: object, default: T, reason: str) -> T:
    """Log a user-friendly message and return the safe default."""
    logger.warning(
        "Invalid value for %s=%r; %s. Falling back to %r.",
        field_name,
        raw_value,
        reason,
        default,
    )
    return default


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # Application settings
    APP_HOST: str = Field("0.0.0.0", description="Host address the app binds to")
    APP_PORT: int = Field(8000, gt=0, lt=65536, description="Port the app listens on")
    DEBUG: bool = Field(False, description="Enable debug logging")

    # Sentry/GlitchTip settings
    SENTRY_DSN: Optional[str] = Field(default=None, description="Sentry DSN")
    SENTRY_ENVIRONMENT: str = Field("production", description="Sentry environment name")
    SENTRY_TRACES_SAMPLE_RATE: float = Field(0.1, ge=0.0, le=1.0, description="Tracing sample rate")

    # Upstream APIs
    REQUEST_TIMEOUT: int = Field(10, gt=0, description="HTTP request timeout in seconds")
    TRIP_FEED_URL: str = Field(
        "https://natecation.com/site-metadata.json",
        description="Site metadata feed with the trip list",
    )
    GOOGLE_MAPS_API_KEY: Optional[str] = Field(
        default=None, description="Key for the Google geocoding and timezone APIs"
    )
    GEOCODE_API_URL: str = Field(
        "https://maps.googleapis.com/maps/api/geocode/json",
        description="Google geocoding endpoint",
    )
    TIMEZONE_API_URL: str = Field(
        "https://maps.googleapis.com/maps/api/timezone/json",
        description="Google timezone endpoint",
    )

    # Signature content
    SIGNATURE_NAME: str = Field("Nathan H. Leung", description="Name on the title line")
    SITE_NAME: str = Field("natecation.com", description="Site label shown after the city")

    # Rendering
    # Paths may point at .ttf/.otf files or at JSON array-encoded fonts.
    # Missing files fall back to system fonts.
    FONT_REGULAR_PATH: str = Field(
        "app/assets/fonts/font-normal.json", description="Regular (400) font"
    )
    FONT_BOLD_PATH: str = Field("app/assets/fonts/font-bold.json", description="Bold (700) font")
    RASTER_FIT_TO: str = Field("original", description="Raster size policy: original or zoom:<f>")
    CACHE_MAX_AGE: int = Field(86400, ge=0, description="max-age for the cache-control header")

    @field_validator("APP_PORT", mode="before")
    @classmethod
    def validate_port(cls, value: object, info: ValidationInfo) -> int:
        if info.field_name is None:
            return 8000
        default: int = cls.model_fields[info.field_name].default
        try:
            port = int(value)  # type: ignore[arg-type]
            if 0 < port < 65536:
                return port
        except (TypeError, ValueError):
            pass
        return _warn_invalid(info.field_name, value, default, "must be a positive integer < 65536")

    @field_validator("REQUEST_TIMEOUT", mode="before")
    @classmethod
    def validate_positive_int(cls, value: object, info: ValidationInfo) -> int:
        if info.field_name is None:
            return 10
        default: int = cls.model_fields[info.field_name].default
        try:
            number = int(value)  # type: ignore[arg-type]
            if number > 0:
                return number
        except (TypeError, ValueError):
            pass
        return _warn_invalid(info.field_name, value, default, "must be a positive integer")

    @field_validator("CACHE_MAX_AGE", mode="before")
    @classmethod
    def validate_max_age(cls, value: object, info: ValidationInfo) -> int:
        if info.field_name is None:
            return 86400
        default: int = cls.model_fields[info.field_name].default
        try:
            seconds = int(value)  # type: ignore[arg-type]
            if seconds >= 0:
                return seconds
        except (TypeError, ValueError):
            pass
        return _warn_invalid(info.field_name, value, default, "must be a non-negative integer")

    @field_validator("SENTRY_TRACES_SAMPLE_RATE", mode="before")
    @classmethod
    def validate_sample_rate(cls, value: object, info: ValidationInfo) -> float:
        if info.field_name is None:
            return 0.1
        default: float = cls.model_fields[info.field_name].default
        try:
            rate = float(value)  # type: ignore[arg-type]
            if 0.0 <= rate <= 1.0:
                return rate
        except (TypeError, ValueError):
            pass
        return _warn_invalid(info.field_name, value, default, "must be between 0.0 and 1.0")

    @field_validator("TRIP_FEED_URL", "GEOCODE_API_URL", "TIMEZONE_API_URL", mode="before")
    @classmethod
    def validate_url(cls, value: object, info: ValidationInfo) -> str:
        if info.field_name is None:
            return "https://example.com"
        default: str = cls.model_fields[info.field_name].default
        adapter = TypeAdapter(HttpUrl)
        try:
            adapter.validate_python(value)
            return str(value)
        except ValidationError:
            return _warn_invalid(info.field_name, value, default, "must be a valid URL")

    @field_validator("RASTER_FIT_TO", mode="before")
    @classmethod
    def validate_fit_to(cls, value: object, info: ValidationInfo) -> str:
        if info.field_name is None:
            return "original"
        default: str = cls.model_fields[info.field_name].default
        if value == "original":
            return value
        if isinstance(value, str) and value.startswith("zoom:"):
            try:
                if float(value[len("zoom:") :]) > 0:
                    return value
            except ValueError:
                pass
        return _warn_invalid(info.field_name, value, default, "must be 'original' or 'zoom:<f>'")

    @field_validator("GOOGLE_MAPS_API_KEY", "SENTRY_DSN", mode="before")
    @classmethod
    def empty_to_none(cls, value: object) -> Optional[object]:
        if value == "":
            return None
        return value


@lru_cache()
def get_config() -> Config:
    """Load configuration once and reuse across the application."""
    return Config()  # type: ignore[call-arg]


def _reset_config_cache_for_tests() -> None:
    """Allow tests to rebuild configuration with fresh environment variables."""

    get_config.cache_clear()


config = get_config()
