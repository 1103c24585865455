"""Icon bundle export endpoint."""

import asyncio
import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from archive import ARCHIVE_ROOT, archive_filename, stream_archive
from config import Settings, get_settings
from errors import ApiError, internal_error, validation_error
from icon_catalog import PLATFORMS
from image_transform import (
    MAX_PADDING_PERCENT,
    CorruptImageError,
    ImageTooLargeError,
    InvalidImagePayloadError,
    UnsupportedImageFormatError,
    decode_base64_image,
    is_valid_hex_color,
)
from platform_assemblers import ExportDeadlineExceeded, ProcessingOptions, run_export

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["export"])

MAX_APP_NAME_LENGTH = 100

# Exports run on their own bounded pool, apart from the loop's default executor
_export_executor: Optional[ThreadPoolExecutor] = None


def init_export_executor(max_workers: int) -> ThreadPoolExecutor:
    global _export_executor
    _export_executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="export")
    logger.info(f"Export pool started with {max_workers} workers")
    return _export_executor


def close_export_executor():
    global _export_executor
    if _export_executor:
        # Timed-out renders are abandoned, queued ones dropped
        _export_executor.shutdown(wait=False, cancel_futures=True)
        _export_executor = None


def get_export_executor() -> ThreadPoolExecutor:
    if _export_executor is None:
        raise RuntimeError("Export pool not initialized. Call init_export_executor() first.")
    return _export_executor


@dataclass(frozen=True)
class ExportJob:
    image_bytes: bytes
    platforms: List[str]
    options: ProcessingOptions


def validate_export_request(body: Any) -> ExportJob:
    """Check an export request body field by field.

    Raises ApiError with a specific code for the first problem found. The
    image payload is only base64-decoded here, never decoded as an image.
    """
    if not body or not isinstance(body, dict):
        raise validation_error("Request body is required", "MISSING_BODY")

    logo = body.get("logoBase64")
    if not logo or not isinstance(logo, str):
        raise validation_error("logoBase64 is required and must be a string", "INVALID_LOGO")
    try:
        image_bytes = decode_base64_image(logo)
    except InvalidImagePayloadError:
        raise validation_error("Invalid base64 image format", "INVALID_IMAGE_FORMAT")

    platforms = body.get("platforms")
    if platforms is None or not isinstance(platforms, list):
        raise validation_error("platforms is required and must be an array", "INVALID_PLATFORMS")
    if len(platforms) == 0:
        raise validation_error("At least one platform must be selected", "NO_PLATFORMS")
    for platform in platforms:
        if platform not in PLATFORMS:
            raise validation_error(
                f"Invalid platform: {platform}. Must be one of: {', '.join(PLATFORMS)}",
                "INVALID_PLATFORM",
            )
    if len(set(platforms)) != len(platforms):
        raise validation_error("Each platform may only be selected once", "INVALID_PLATFORM")

    background_color = body.get("backgroundColor")
    if background_color is not None:
        if not isinstance(background_color, str):
            raise validation_error("backgroundColor must be a string", "INVALID_BACKGROUND_COLOR")
        if not is_valid_hex_color(background_color):
            raise validation_error(
                "backgroundColor must be a valid hex color (e.g., #fff, #ffffff, or #ffffffff)",
                "INVALID_HEX_COLOR",
            )

    padding = body.get("padding")
    if padding is not None:
        if isinstance(padding, bool) or not isinstance(padding, (int, float)):
            raise validation_error("padding must be a number", "INVALID_PADDING_TYPE")
        if not math.isfinite(padding) or padding < 0 or padding > MAX_PADDING_PERCENT:
            raise validation_error(
                f"padding must be between 0 and {MAX_PADDING_PERCENT} (percentage)",
                "INVALID_PADDING_RANGE",
            )

    app_name = body.get("appName")
    if app_name is not None:
        if not isinstance(app_name, str) or not app_name.strip() or len(app_name) > MAX_APP_NAME_LENGTH:
            raise validation_error(
                f"appName must be a non-empty string of at most {MAX_APP_NAME_LENGTH} characters",
                "INVALID_APP_NAME",
            )

    options = ProcessingOptions(
        background_color=background_color,
        padding=padding or 0,
        app_name=app_name.strip() if app_name else None,
    )
    return ExportJob(image_bytes=image_bytes, platforms=list(platforms), options=options)


def _image_too_large() -> ApiError:
    return ApiError(
        "Image too large to process. Please use a smaller image (max 10MB recommended).",
        status_code=413,
        code="IMAGE_TOO_LARGE",
    )


@router.post("/export")
async def export_icons(request: Request, settings: Settings = Depends(get_settings)):
    """
    Generate an icon bundle for the selected platforms.

    Returns a streamed ZIP archive (logoforge-icons/<platform>/...).
    """
    try:
        body = await request.json()
    except (ValueError, UnicodeDecodeError):
        raise validation_error("Invalid JSON in request body", "INVALID_JSON")

    job = validate_export_request(body)
    if len(job.image_bytes) > settings.max_upload_bytes:
        raise _image_too_large()

    logger.info(f"Processing export for platforms: {', '.join(job.platforms)}")
    started = time.monotonic()

    deadline = time.monotonic() + settings.export_timeout_seconds
    loop = asyncio.get_running_loop()
    try:
        files = await asyncio.wait_for(
            loop.run_in_executor(
                get_export_executor(),
                partial(
                    run_export,
                    job.image_bytes,
                    job.platforms,
                    job.options,
                    settings.max_image_pixels,
                    settings.export_max_workers,
                    deadline=deadline,
                ),
            ),
            timeout=settings.export_timeout_seconds,
        )
    except (asyncio.TimeoutError, ExportDeadlineExceeded):
        logger.warning(f"Export timed out after {settings.export_timeout_seconds:.0f}s")
        raise ApiError(
            "Image processing timed out. Please try with a smaller image.",
            status_code=504,
            code="TIMEOUT",
        )
    except (ImageTooLargeError, MemoryError) as e:
        logger.warning(f"Export rejected, image too large: {e}")
        raise _image_too_large()
    except UnsupportedImageFormatError as e:
        logger.warning(f"Export rejected: {e}")
        raise ApiError(
            "Unsupported image format. Please use PNG, JPEG, or WebP.",
            status_code=400,
            code="UNSUPPORTED_FORMAT",
        )
    except CorruptImageError as e:
        logger.warning(f"Export rejected: {e}")
        raise ApiError(
            "The image appears to be corrupted. Please try uploading again.",
            status_code=400,
            code="CORRUPT_IMAGE",
        )
    except Exception as e:
        logger.exception("Export failed")
        raise internal_error(e)

    logger.info(f"Generated {len(files)} files in {time.monotonic() - started:.2f}s")

    return StreamingResponse(
        stream_archive(files, compression_level=settings.export_compression_level),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{archive_filename()}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )


@router.get("/export")
def describe_export():
    """Describe the export request body and archive layout."""
    return {
        "endpoint": "/api/export",
        "method": "POST",
        "description": "Generate icon bundles for iOS, Android, and Web platforms",
        "request": {
            "body": {
                "logoBase64": {
                    "type": "string",
                    "required": True,
                    "description": "Base64 encoded logo image (PNG, JPEG, or WebP)",
                },
                "platforms": {
                    "type": "array",
                    "required": True,
                    "items": list(PLATFORMS),
                    "description": "Platforms to generate icons for",
                },
                "backgroundColor": {
                    "type": "string",
                    "required": False,
                    "description": "Background color in hex format (e.g., #ffffff)",
                },
                "padding": {
                    "type": "number",
                    "required": False,
                    "description": f"Padding percentage (0-{MAX_PADDING_PERCENT})",
                },
                "appName": {
                    "type": "string",
                    "required": False,
                    "description": "App name written to the web manifest",
                },
            },
        },
        "response": {
            "success": "ZIP file download",
            "error": {"status": 400, "body": {"error": "Error message", "code": "ERROR_CODE"}},
        },
        "zipStructure": {
            f"{ARCHIVE_ROOT}/": {
                "ios/AppIcon.appiconset/": "Contents.json + PNG files",
                "android/mipmap-*/": "ic_launcher.png, ic_launcher_round.png, ic_launcher_foreground.png",
                "android/mipmap-anydpi-v26/": "ic_launcher.xml, ic_launcher_round.xml",
                "android/values/": "colors.xml",
                "android/": "playstore-icon.png",
                "web/": "favicon.ico, favicon-*.png, apple-touch-icon.png, android-chrome-*.png, "
                        "mstile-*.png, manifest.json, browserconfig.xml",
            },
        },
    }
