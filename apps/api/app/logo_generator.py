"""Client for the Gemini image generation API.

Produces candidate logo images from a text prompt and optional reference
images. The export pipeline never calls this; it only consumes the bytes a
user picks from the results.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
VARIATION_COUNT = 4

STYLE_GUIDANCE: Dict[str, str] = {
    "any": "Create a versatile, professional logo that works across various contexts.",
    "minimalist": (
        "Create a clean, simple logo with minimal elements. Use negative space effectively. "
        "Avoid gradients and complex details. Focus on essential shapes and forms."
    ),
    "playful": (
        "Create a fun, energetic logo with vibrant colors and dynamic shapes. "
        "Consider rounded edges, bouncy typography, and friendly elements."
    ),
    "corporate": (
        "Create a professional, trustworthy logo suitable for business contexts. "
        "Use clean lines, balanced composition, and sophisticated color palette."
    ),
    "mascot": (
        "Create a character-based logo with a memorable mascot. The character should be "
        "distinctive, friendly, and represent the brand personality."
    ),
}

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


class GenerationError(Exception):
    """Raised when no logo could be generated."""
    pass


class GenerationUnavailableError(GenerationError):
    """The image API could not be reached."""
    pass


class UpstreamRateLimitError(GenerationError):
    pass


class UpstreamAuthError(GenerationError):
    pass


@dataclass(frozen=True)
class GeneratedLogo:
    id: str
    base64: str
    mime_type: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "base64": self.base64, "mimeType": self.mime_type}


def build_system_prompt(style: str, app_name: Optional[str] = None, color_hints: Optional[str] = None) -> str:
    parts = [
        "You are an expert logo designer. Generate a professional, high-quality logo image.",
        "",
        "## Design Requirements:",
        "- Create a logo that is visually striking and memorable",
        "- Ensure the design works well at different sizes (scalable)",
        "- Use a clean, transparent or simple background",
        "- The logo should be centered and well-composed",
        "- Output a square image suitable for app icons and branding",
        "",
        "## Style Direction:",
        STYLE_GUIDANCE[style],
    ]

    if app_name:
        parts += [
            "",
            "## Brand Name:",
            f'The logo is for: "{app_name}". Consider incorporating the name or initials tastefully if appropriate.',
        ]

    if color_hints:
        parts += [
            "",
            "## Color Preferences:",
            f"Preferred colors or color scheme: {color_hints}. "
            "Use these as guidance while ensuring good contrast and visual appeal.",
        ]

    parts += [
        "",
        "## Output:",
        "Generate a single, complete logo image. Do not include any text explanation, just the image.",
    ]
    return "\n".join(parts)


def build_user_prompt(mode: str, prompt: str, has_images: bool) -> str:
    if mode == "reference" and has_images:
        return (
            "Using the provided reference image(s) as inspiration for style, colors, or concept, "
            f"create a new and original logo based on this description:\n\n{prompt}\n\n"
            "Do not copy the reference images directly. Instead, use them to inform the design "
            "direction while creating something unique."
        )
    return f"Create a logo based on this description:\n\n{prompt}"


def parse_base64_image(image: str) -> Tuple[str, str]:
    """Split a data URL into (mime_type, data); raw base64 is assumed PNG."""
    match = _DATA_URL_RE.match(image)
    if match:
        return match.group(1), match.group(2)
    return "image/png", image


def extract_inline_image(payload: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """Return (mime_type, base64) of the first image part in a generateContent response."""
    for candidate in payload.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return mime_type, inline["data"]
        # Only the first candidate is used
        break
    return None


class LogoGenerator:
    """Generates logo variations through the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 120.0,
        base_url: str = GEMINI_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def connect(self):
        """Initialize HTTP client."""
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"x-goog-api-key": self.api_key},
            transport=self.transport,
        )

    async def close(self):
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def _generate_one(self, parts: List[Dict[str, Any]]) -> Optional[Tuple[str, str]]:
        if not self.client:
            raise RuntimeError("Client not connected. Call connect() first.")

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }
        try:
            response = await self.client.post(f"/models/{self.model}:generateContent", json=body)
        except httpx.TimeoutException:
            raise
        except httpx.TransportError as e:
            raise GenerationUnavailableError(f"Unable to reach image API: {e}")

        if response.status_code == 429:
            raise UpstreamRateLimitError("Image API quota exceeded")
        if response.status_code in (401, 403):
            raise UpstreamAuthError("Image API rejected the credentials")
        response.raise_for_status()
        return extract_inline_image(response.json())

    async def generate_logos(
        self,
        mode: str,
        prompt: str,
        images: Optional[List[str]] = None,
        style: str = "any",
        app_name: Optional[str] = None,
        color_hints: Optional[str] = None,
        count: int = VARIATION_COUNT,
    ) -> List[GeneratedLogo]:
        """Generate up to count logo variations, one request each.

        A variation that fails with a bad response is skipped. Connection,
        quota and credential failures abort the whole call.
        """
        system_prompt = build_system_prompt(style, app_name, color_hints)
        user_prompt = build_user_prompt(mode, prompt, bool(images))

        image_parts = []
        if mode == "reference" and images:
            for image in images:
                mime_type, data = parse_base64_image(image)
                image_parts.append({"inlineData": {"mimeType": mime_type, "data": data}})

        logos: List[GeneratedLogo] = []
        for i in range(count):
            text = (
                f"{system_prompt}\n\n{user_prompt}\n\n"
                f"This is variation {i + 1} of {count}. Create a unique and distinct design for this variation."
            )
            try:
                result = await self._generate_one([{"text": text}] + image_parts)
            except (httpx.HTTPStatusError, ValueError) as e:
                logger.warning(f"Logo variation {i + 1} failed: {e}")
                continue

            if result is None:
                logger.warning(f"Logo variation {i + 1} returned no image")
                continue

            mime_type, data = result
            logos.append(GeneratedLogo(id=str(uuid.uuid4()), base64=data, mime_type=mime_type))

        if not logos:
            raise GenerationError("Failed to generate any logos. Please try again.")

        logger.info(f"Generated {len(logos)}/{count} logo variations")
        return logos
