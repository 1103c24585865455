"""Per-platform icon bundle assembly.

Each assembler walks its catalog table, renders every entry with the
matching transform and adds the platform's sidecar files. Results are
ordered dicts of output path -> bytes in catalog order, so the archive
built from them is reproducible whether icons are rendered sequentially
or on a thread pool.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from favicon_encoder import encode_ico
from icon_catalog import (
    ANDROID,
    ANDROID_COLORS_XML_PATH,
    ANDROID_IC_LAUNCHER_ROUND_XML,
    ANDROID_IC_LAUNCHER_ROUND_XML_PATH,
    ANDROID_IC_LAUNCHER_XML,
    ANDROID_IC_LAUNCHER_XML_PATH,
    ANDROID_ICON_SIZES,
    IOS,
    IOS_CONTENTS_JSON_PATH,
    IOS_ICON_SIZES,
    WEB,
    WEB_BROWSERCONFIG_PATH,
    WEB_FAVICON_ICO_PATH,
    WEB_FAVICON_ICO_SIZES,
    WEB_ICON_SIZES,
    WEB_MANIFEST_PATH,
    IconSpec,
    generate_android_colors_xml,
    generate_browser_config_xml,
    generate_ios_contents_json,
    generate_web_manifest,
)
from image_transform import (
    SourceImage,
    add_padding,
    clamp_padding,
    composite_adaptive_foreground,
    decode_image,
    mask_circular,
    resize_to_square,
)

logger = logging.getLogger(__name__)

# Maskable manifest icons always get at least this much padding
MASKABLE_MIN_PADDING = 10
MASKABLE_DEFAULT_BACKGROUND = "#ffffff"

ANDROID_DEFAULT_BACKGROUND = "#FFFFFF"
WEB_DEFAULT_TILE_COLOR = "#ffffff"
DEFAULT_APP_NAME = "App"

RenderJob = Tuple[str, Callable[[], bytes]]


class ExportDeadlineExceeded(Exception):
    """Raised when an export runs past its deadline between platforms."""
    pass


@dataclass(frozen=True)
class ProcessingOptions:
    background_color: Optional[str] = None
    padding: float = 0  # percent, 0-20
    app_name: Optional[str] = None

    @property
    def effective_padding(self) -> float:
        return clamp_padding(self.padding or 0)


def _render_jobs(jobs: Sequence[RenderJob], max_workers: int = 1) -> Dict[str, bytes]:
    """Run render jobs and return their output keyed by path, in job order.

    Any failing job raises; a partial bundle is never returned.
    """
    if max_workers <= 1 or len(jobs) <= 1:
        rendered = [render() for _, render in jobs]
    else:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="icon-render") as executor:
            rendered = list(executor.map(lambda job: job[1](), jobs))

    return {path: data for (path, _), data in zip(jobs, rendered)}


def _standard_job(source: SourceImage, spec: IconSpec, options: ProcessingOptions) -> RenderJob:
    # add_padding() with 0% is the plain resize
    return spec.output_path, partial(
        add_padding, source, spec.size, options.effective_padding, options.background_color
    )


def assemble_ios(source: SourceImage, options: ProcessingOptions, max_workers: int = 1) -> Dict[str, bytes]:
    """AppIcon.appiconset: every catalog size plus Contents.json."""
    jobs = [_standard_job(source, spec, options) for spec in IOS_ICON_SIZES]
    files = _render_jobs(jobs, max_workers)
    files[IOS_CONTENTS_JSON_PATH] = generate_ios_contents_json().encode("utf-8")
    return files


def _android_job(source: SourceImage, spec: IconSpec, options: ProcessingOptions) -> RenderJob:
    variant = spec.tags["variant"]
    if variant == "round":
        return spec.output_path, partial(
            mask_circular, source, spec.size, options.effective_padding, options.background_color
        )
    if variant == "adaptive":
        return spec.output_path, partial(composite_adaptive_foreground, source, spec.size)
    return _standard_job(source, spec, options)


def assemble_android(source: SourceImage, options: ProcessingOptions, max_workers: int = 1) -> Dict[str, bytes]:
    """mipmap launcher, round and adaptive icons, Play Store icon, XML resources."""
    jobs = [_android_job(source, spec, options) for spec in ANDROID_ICON_SIZES]
    files = _render_jobs(jobs, max_workers)

    files[ANDROID_IC_LAUNCHER_XML_PATH] = ANDROID_IC_LAUNCHER_XML.encode("utf-8")
    files[ANDROID_IC_LAUNCHER_ROUND_XML_PATH] = ANDROID_IC_LAUNCHER_ROUND_XML.encode("utf-8")
    colors = generate_android_colors_xml(options.background_color or ANDROID_DEFAULT_BACKGROUND)
    files[ANDROID_COLORS_XML_PATH] = colors.encode("utf-8")
    return files


def _web_job(source: SourceImage, spec: IconSpec, options: ProcessingOptions) -> RenderJob:
    group = spec.tags["group"]
    if group == "favicon":
        # Favicons are rendered plain: no padding, no background
        return spec.output_path, partial(resize_to_square, source, spec.size)
    if spec.tags.get("purpose") == "maskable":
        padding = max(options.effective_padding, MASKABLE_MIN_PADDING)
        background = options.background_color or MASKABLE_DEFAULT_BACKGROUND
        return spec.output_path, partial(add_padding, source, spec.size, padding, background)
    return _standard_job(source, spec, options)


def assemble_web(source: SourceImage, options: ProcessingOptions, max_workers: int = 1) -> Dict[str, bytes]:
    """Favicons, favicon.ico, touch/manifest/tile icons, manifest.json, browserconfig.xml."""
    jobs = [_web_job(source, spec, options) for spec in WEB_ICON_SIZES]
    files = _render_jobs(jobs, max_workers)

    favicon_pngs = {
        spec.size: files[spec.output_path]
        for spec in WEB_ICON_SIZES
        if spec.tags["group"] == "favicon"
    }
    files[WEB_FAVICON_ICO_PATH] = encode_ico([(size, favicon_pngs[size]) for size in WEB_FAVICON_ICO_SIZES])

    files[WEB_MANIFEST_PATH] = generate_web_manifest(options.app_name or DEFAULT_APP_NAME).encode("utf-8")
    tile_color = options.background_color or WEB_DEFAULT_TILE_COLOR
    files[WEB_BROWSERCONFIG_PATH] = generate_browser_config_xml(tile_color).encode("utf-8")
    return files


ASSEMBLERS: Dict[str, Callable[..., Dict[str, bytes]]] = {
    IOS: assemble_ios,
    ANDROID: assemble_android,
    WEB: assemble_web,
}


def assemble_export(
    source: SourceImage,
    platforms: Sequence[str],
    options: ProcessingOptions,
    max_workers: int = 1,
    deadline: Optional[float] = None,
) -> Dict[str, bytes]:
    """Assemble every requested platform into one path -> bytes mapping.

    deadline is a time.monotonic() value; once it has passed, no further
    platform is started.
    """
    files: Dict[str, bytes] = {}
    for platform in platforms:
        assembler = ASSEMBLERS.get(platform)
        if assembler is None:
            raise ValueError(f"Unknown platform: {platform}")
        if deadline is not None and time.monotonic() >= deadline:
            raise ExportDeadlineExceeded(f"Export deadline passed before {platform} bundle")

        for path, data in assembler(source, options, max_workers).items():
            if path in files:
                raise ValueError(f"Duplicate output path in export: {path}")
            files[path] = data

    return files


def run_export(
    image_bytes: bytes,
    platforms: List[str],
    options: ProcessingOptions,
    max_pixels: Optional[int] = None,
    max_workers: int = 1,
    deadline: Optional[float] = None,
) -> Dict[str, bytes]:
    """Decode the source image and assemble the export for all platforms."""
    started = time.monotonic()
    source = decode_image(image_bytes, max_pixels=max_pixels)
    files = assemble_export(source, platforms, options, max_workers, deadline)
    logger.info(
        f"Assembled {len(files)} files for {', '.join(platforms)} "
        f"from {source.width}x{source.height} {source.format} in {time.monotonic() - started:.2f}s"
    )
    return files
