"""Service settings loaded from environment variables."""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    app_version: str
    allowed_origins: List[str]
    log_level: str

    # Export pipeline
    export_timeout_seconds: float
    export_compression_level: int
    export_max_workers: int
    export_concurrency: int
    max_upload_bytes: int
    max_image_pixels: int

    # Rate limiting (generation endpoint)
    rate_limit_max_requests: int
    rate_limit_window_seconds: int
    redis_url: Optional[str]

    # Generative image API
    google_ai_api_key: Optional[str]
    google_ai_model: str
    generation_timeout_seconds: float


def _env_int(name: str, default: int, minimum: int = 0, maximum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise ValueError(f"{name} must be {bound}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> Settings:
    """Build settings from the current environment."""
    # Default to allow all origins; set ALLOWED_ORIGINS (comma-separated) to restrict.
    origins_env = os.environ.get("ALLOWED_ORIGINS")
    if origins_env:
        origins = [o.strip() for o in origins_env.split(",") if o.strip()]
    else:
        origins = ["*"]

    return Settings(
        app_version=os.getenv("APP_VERSION", "dev"),
        allowed_origins=origins,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        export_timeout_seconds=_env_float("EXPORT_TIMEOUT_SECONDS", 60.0),
        export_compression_level=_env_int("EXPORT_COMPRESSION_LEVEL", 6, minimum=0, maximum=9),
        export_max_workers=_env_int("EXPORT_MAX_WORKERS", 1, minimum=1),
        export_concurrency=_env_int("EXPORT_CONCURRENCY", 4, minimum=1),
        max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024, minimum=1),
        max_image_pixels=_env_int("MAX_IMAGE_PIXELS", 40_000_000, minimum=1),
        rate_limit_max_requests=_env_int("RATE_LIMIT_MAX_REQUESTS", 20, minimum=1),
        rate_limit_window_seconds=_env_int("RATE_LIMIT_WINDOW_SECONDS", 3600, minimum=1),
        redis_url=os.getenv("REDIS_URL") or None,
        google_ai_api_key=os.getenv("GOOGLE_AI_API_KEY") or None,
        google_ai_model=os.getenv("GOOGLE_AI_MODEL", "gemini-3-pro-image-preview"),
        generation_timeout_seconds=_env_float("GENERATION_TIMEOUT_SECONDS", 120.0),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
