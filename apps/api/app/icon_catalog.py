"""Icon size tables for iOS, Android, and Web exports.

Every output the export produces is declared here as data. The assemblers
walk these tables; adding a size or a platform is a change to this module
only. Sidecar files (Contents.json, adaptive icon XML, manifest.json,
browserconfig.xml) are generated from the same tables.
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple


IOS = "ios"
ANDROID = "android"
WEB = "web"

PLATFORMS: Tuple[str, ...] = (IOS, ANDROID, WEB)


@dataclass(frozen=True)
class IconSpec:
    size: int  # px, square
    filename: str
    output_path: str
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError(f"Icon size must be positive: {self.output_path}")
        # Freeze tags so catalog entries stay read-only
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))


# ---------------------------------------------------------------------------
# iOS (AppIcon.appiconset)
# ---------------------------------------------------------------------------

IOS_FOLDER = "ios/AppIcon.appiconset"

SCALE_MULTIPLIERS: Dict[str, int] = {"1x": 1, "2x": 2, "3x": 3}


def _ios(size: int, filename: str, idiom: str, scale: str) -> IconSpec:
    return IconSpec(size, filename, f"{IOS_FOLDER}/{filename}", {"idiom": idiom, "scale": scale})


IOS_ICON_SIZES: Tuple[IconSpec, ...] = (
    # App Store
    _ios(1024, "AppIcon-1024.png", "ios-marketing", "1x"),
    # iPhone
    _ios(180, "AppIcon-60@3x.png", "iphone", "3x"),
    _ios(120, "AppIcon-60@2x.png", "iphone", "2x"),
    _ios(120, "AppIcon-40@3x.png", "iphone", "3x"),
    _ios(87, "AppIcon-29@3x.png", "iphone", "3x"),
    _ios(80, "AppIcon-40@2x.png", "iphone", "2x"),
    _ios(58, "AppIcon-29@2x.png", "iphone", "2x"),
    _ios(40, "AppIcon-20@2x.png", "iphone", "2x"),
    # iPad
    _ios(167, "AppIcon-83.5@2x.png", "ipad", "2x"),
    _ios(152, "AppIcon-76@2x.png", "ipad", "2x"),
    _ios(80, "AppIcon-40@2x-ipad.png", "ipad", "2x"),
    _ios(76, "AppIcon-76@1x.png", "ipad", "1x"),
    _ios(40, "AppIcon-40@1x.png", "ipad", "1x"),
    _ios(40, "AppIcon-20@2x-ipad.png", "ipad", "2x"),
    _ios(29, "AppIcon-29@1x.png", "ipad", "1x"),
    _ios(20, "AppIcon-20@1x.png", "ipad", "1x"),
)

IOS_CONTENTS_JSON_PATH = f"{IOS_FOLDER}/Contents.json"


# ---------------------------------------------------------------------------
# Android (mipmap folders)
# ---------------------------------------------------------------------------

# Launcher icon size (px) per density bucket
ANDROID_DENSITIES: Tuple[Tuple[str, int], ...] = (
    ("mdpi", 48),
    ("hdpi", 72),
    ("xhdpi", 96),
    ("xxhdpi", 144),
    ("xxxhdpi", 192),
)

# Adaptive foreground layer is 108dp against a 48dp launcher icon
ADAPTIVE_CANVAS_DP = 108
LAUNCHER_DP = 48
ADAPTIVE_SAFE_ZONE_DP = 72

ANDROID_PLAYSTORE_SIZE = 512


def _android(size: int, filename: str, density: str, variant: str) -> IconSpec:
    folder = f"mipmap-{density}"
    return IconSpec(
        size,
        filename,
        f"android/{folder}/{filename}",
        {"density": density, "folder": folder, "variant": variant},
    )


ANDROID_LAUNCHER_SIZES: Tuple[IconSpec, ...] = tuple(
    _android(px, "ic_launcher.png", density, "launcher") for density, px in ANDROID_DENSITIES
)

ANDROID_ROUND_SIZES: Tuple[IconSpec, ...] = tuple(
    _android(px, "ic_launcher_round.png", density, "round") for density, px in ANDROID_DENSITIES
)

ANDROID_ADAPTIVE_SIZES: Tuple[IconSpec, ...] = tuple(
    _android(px * ADAPTIVE_CANVAS_DP // LAUNCHER_DP, "ic_launcher_foreground.png", density, "adaptive")
    for density, px in ANDROID_DENSITIES
)

ANDROID_PLAYSTORE_ICON = IconSpec(
    ANDROID_PLAYSTORE_SIZE,
    "playstore-icon.png",
    "android/playstore-icon.png",
    {"variant": "playstore"},
)

ANDROID_ICON_SIZES: Tuple[IconSpec, ...] = (
    ANDROID_LAUNCHER_SIZES
    + ANDROID_ROUND_SIZES
    + ANDROID_ADAPTIVE_SIZES
    + (ANDROID_PLAYSTORE_ICON,)
)

ANDROID_IC_LAUNCHER_XML_PATH = "android/mipmap-anydpi-v26/ic_launcher.xml"
ANDROID_IC_LAUNCHER_ROUND_XML_PATH = "android/mipmap-anydpi-v26/ic_launcher_round.xml"
ANDROID_COLORS_XML_PATH = "android/values/colors.xml"


# ---------------------------------------------------------------------------
# Web
# ---------------------------------------------------------------------------

def _web(size: int, filename: str, group: str, purpose: str = "") -> IconSpec:
    tags = {"group": group}
    if purpose:
        tags["purpose"] = purpose
    return IconSpec(size, filename, f"web/{filename}", tags)


WEB_FAVICON_SIZES: Tuple[IconSpec, ...] = (
    _web(16, "favicon-16x16.png", "favicon"),
    _web(32, "favicon-32x32.png", "favicon"),
    _web(48, "favicon-48x48.png", "favicon"),
)

# Sizes packed into favicon.ico
WEB_FAVICON_ICO_SIZES: Tuple[int, ...] = (16, 32, 48)

WEB_APPLE_TOUCH_ICON = _web(180, "apple-touch-icon.png", "apple-touch")

WEB_MANIFEST_SIZES: Tuple[IconSpec, ...] = (
    _web(192, "android-chrome-192x192.png", "manifest", "any"),
    _web(512, "android-chrome-512x512.png", "manifest", "any"),
    _web(192, "android-chrome-192x192-maskable.png", "manifest", "maskable"),
    _web(512, "android-chrome-512x512-maskable.png", "manifest", "maskable"),
)

WEB_MSTILE_SIZES: Tuple[IconSpec, ...] = (
    _web(150, "mstile-150x150.png", "mstile"),
    _web(310, "mstile-310x310.png", "mstile"),
)

WEB_ICON_SIZES: Tuple[IconSpec, ...] = (
    WEB_FAVICON_SIZES
    + (WEB_APPLE_TOUCH_ICON,)
    + WEB_MANIFEST_SIZES
    + WEB_MSTILE_SIZES
)

WEB_FAVICON_ICO_PATH = "web/favicon.ico"
WEB_MANIFEST_PATH = "web/manifest.json"
WEB_BROWSERCONFIG_PATH = "web/browserconfig.xml"


# ---------------------------------------------------------------------------
# Combined lookups
# ---------------------------------------------------------------------------

PLATFORM_ICON_SIZES: Mapping[str, Tuple[IconSpec, ...]] = MappingProxyType({
    IOS: IOS_ICON_SIZES,
    ANDROID: ANDROID_ICON_SIZES,
    WEB: WEB_ICON_SIZES,
})

PLATFORM_SIDECAR_PATHS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    IOS: (IOS_CONTENTS_JSON_PATH,),
    ANDROID: (
        ANDROID_IC_LAUNCHER_XML_PATH,
        ANDROID_IC_LAUNCHER_ROUND_XML_PATH,
        ANDROID_COLORS_XML_PATH,
    ),
    WEB: (WEB_FAVICON_ICO_PATH, WEB_MANIFEST_PATH, WEB_BROWSERCONFIG_PATH),
})


def _check_platform(platform: str) -> None:
    if platform not in PLATFORM_ICON_SIZES:
        raise ValueError(f"Unknown platform: {platform}")


def get_icon_specs(platform: str) -> Tuple[IconSpec, ...]:
    _check_platform(platform)
    return PLATFORM_ICON_SIZES[platform]


def get_unique_sizes(platform: str) -> List[int]:
    """Distinct pixel sizes needed for a platform, largest first."""
    return sorted({spec.size for spec in get_icon_specs(platform)}, reverse=True)


def get_folder_structure(platform: str) -> List[str]:
    _check_platform(platform)
    if platform == IOS:
        return [IOS_FOLDER]
    if platform == ANDROID:
        return [f"android/mipmap-{density}" for density, _ in ANDROID_DENSITIES]
    return ["web"]


def get_sidecar_paths(platform: str) -> Tuple[str, ...]:
    _check_platform(platform)
    return PLATFORM_SIDECAR_PATHS[platform]


def get_expected_paths(platform: str) -> List[str]:
    """Every output path an export of this platform produces."""
    return [spec.output_path for spec in get_icon_specs(platform)] + list(get_sidecar_paths(platform))


# ---------------------------------------------------------------------------
# Sidecar generation
# ---------------------------------------------------------------------------

def _format_points(value: float) -> str:
    return f"{value:g}"


def generate_ios_contents_json() -> str:
    """Build Contents.json from IOS_ICON_SIZES (point size = px / scale)."""
    images = []
    for spec in IOS_ICON_SIZES:
        scale = spec.tags["scale"]
        points = _format_points(spec.size / SCALE_MULTIPLIERS[scale])
        images.append({
            "filename": spec.filename,
            "idiom": spec.tags["idiom"],
            "scale": scale,
            "size": f"{points}x{points}",
        })

    return json.dumps({"images": images, "info": {"author": "LogoForge", "version": 1}}, indent=2)


ANDROID_IC_LAUNCHER_XML = """<?xml version="1.0" encoding="utf-8"?>
<adaptive-icon xmlns:android="http://schemas.android.com/apk/res/android">
    <background android:drawable="@color/ic_launcher_background"/>
    <foreground android:drawable="@mipmap/ic_launcher_foreground"/>
</adaptive-icon>"""

ANDROID_IC_LAUNCHER_ROUND_XML = ANDROID_IC_LAUNCHER_XML


def generate_android_colors_xml(background_color: str = "#FFFFFF") -> str:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<resources>
    <color name="ic_launcher_background">{background_color}</color>
</resources>"""


def generate_web_manifest(app_name: str = "App") -> str:
    icons = [
        {
            "src": f"/{spec.filename}",
            "sizes": f"{spec.size}x{spec.size}",
            "type": "image/png",
            "purpose": spec.tags["purpose"],
        }
        for spec in WEB_MANIFEST_SIZES
    ]
    manifest = {
        "name": app_name,
        "short_name": app_name,
        "icons": icons,
        "theme_color": "#ffffff",
        "background_color": "#ffffff",
        "display": "standalone",
    }
    return json.dumps(manifest, indent=2)


def generate_browser_config_xml(tile_color: str = "#ffffff") -> str:
    square150, square310 = WEB_MSTILE_SIZES
    return f"""<?xml version="1.0" encoding="utf-8"?>
<browserconfig>
    <msapplication>
        <tile>
            <square150x150logo src="/{square150.filename}"/>
            <square310x310logo src="/{square310.filename}"/>
            <TileColor>{tile_color}</TileColor>
        </tile>
    </msapplication>
</browserconfig>"""
