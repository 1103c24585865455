"""Logo generation endpoint (rate limited)."""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from config import Settings, get_settings
from errors import ApiError, sanitize_error_message, validation_error
from logo_generator import (
    GenerationError,
    GenerationUnavailableError,
    LogoGenerator,
    UpstreamAuthError,
    UpstreamRateLimitError,
)
from rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])

MAX_PROMPT_LENGTH = 2000
MAX_REFERENCE_IMAGES = 5


class GenerationOptions(BaseModel):
    style: Literal["any", "minimalist", "playful", "corporate", "mascot"]
    appName: Optional[str] = Field(default=None, max_length=100)
    colorHints: Optional[str] = Field(default=None, max_length=200)


class GenerationRequest(BaseModel):
    mode: Literal["text", "reference"]
    prompt: str = Field(max_length=MAX_PROMPT_LENGTH)
    images: Optional[List[str]] = None
    options: GenerationOptions

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt cannot be empty")
        return value

    @model_validator(mode="after")
    def reference_images_present(self):
        if self.mode == "reference":
            if not self.images:
                raise ValueError("at least one image is required for reference mode")
            if len(self.images) > MAX_REFERENCE_IMAGES:
                raise ValueError(f"maximum {MAX_REFERENCE_IMAGES} reference images allowed")
        return self


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def parse_generation_request(body: Any) -> GenerationRequest:
    if not isinstance(body, dict):
        raise validation_error("Request body must be a valid object", "VALIDATION_ERROR")
    try:
        return GenerationRequest.model_validate(body)
    except ValidationError as e:
        raise validation_error(_describe_validation_error(e), "VALIDATION_ERROR")


# Global generator instance
_generator: Optional[LogoGenerator] = None


async def init_generator(settings: Settings):
    global _generator
    if not settings.google_ai_api_key:
        logger.warning("GOOGLE_AI_API_KEY not set; /api/generate will be unavailable")
        return
    _generator = LogoGenerator(
        api_key=settings.google_ai_api_key,
        model=settings.google_ai_model,
        timeout=settings.generation_timeout_seconds,
    )
    await _generator.connect()


async def close_generator():
    global _generator
    if _generator:
        await _generator.close()
        _generator = None


def get_generator() -> Optional[LogoGenerator]:
    return _generator


@router.post("/generate", dependencies=[Depends(enforce_rate_limit)])
async def generate(
    request: Request,
    settings: Settings = Depends(get_settings),
    generator: Optional[LogoGenerator] = Depends(get_generator),
):
    """Generate logo variations from a prompt (and optional reference images)."""
    try:
        body = await request.json()
    except (ValueError, UnicodeDecodeError):
        raise validation_error("Invalid JSON in request body", "INVALID_JSON")

    generation = parse_generation_request(body)

    if generator is None:
        raise ApiError("Server configuration error. Please contact support.", 500, "SERVER_CONFIG_ERROR")

    try:
        logos = await asyncio.wait_for(
            generator.generate_logos(
                generation.mode,
                generation.prompt,
                generation.images,
                style=generation.options.style,
                app_name=generation.options.appName,
                color_hints=generation.options.colorHints,
            ),
            timeout=settings.generation_timeout_seconds,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        raise ApiError("Request timed out. Please try again.", 504, "TIMEOUT")
    except GenerationUnavailableError as e:
        logger.warning(f"Image API unavailable: {e}")
        raise ApiError("Unable to connect to AI service. Please try again later.", 503, "SERVICE_UNAVAILABLE")
    except UpstreamRateLimitError:
        raise ApiError(
            "Service temporarily unavailable due to high demand. Please try again later.",
            429,
            "UPSTREAM_RATE_LIMIT",
        )
    except UpstreamAuthError:
        logger.error("Image API rejected the configured credentials")
        raise ApiError("Server configuration error. Please contact support.", 500, "AUTH_ERROR")
    except GenerationError as e:
        message = sanitize_error_message(str(e)) or "Failed to generate logos. Please try again."
        raise ApiError(message, 500, "GENERATION_ERROR")

    return {
        "id": str(uuid.uuid4()),
        "logos": [logo.to_dict() for logo in logos],
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }
