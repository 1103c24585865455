"""API error type and message sanitizing."""

import re
from typing import Dict, Optional

MAX_ERROR_MESSAGE_LENGTH = 200

_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
_CREDENTIAL_PATTERNS = (
    re.compile(r"API key[^.]*\.?", re.IGNORECASE),
    re.compile(r"\bBearer\s+\S+", re.IGNORECASE),
    re.compile(r"\b(?:api[_-]?key|key|token|secret|password|access_token)\s*[=:]\s*\S+", re.IGNORECASE),
    re.compile(r"\bAIza[0-9A-Za-z_\-]{20,}"),
)
_PATH_TOKEN_RE = re.compile(r"\S*[/\\]\S*")
_WHITESPACE_RE = re.compile(r"\s+")


class ApiError(Exception):
    """Error returned to the client as {"error": message, "code": code}."""

    def __init__(self, message: str, status_code: int = 400, code: str = "VALIDATION_ERROR"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.headers: Optional[Dict[str, str]] = None

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


def validation_error(message: str, code: str) -> ApiError:
    return ApiError(message, status_code=400, code=code)


def sanitize_error_message(message: Optional[str], limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    """Strip URLs, credentials and file-system paths from a message and cap its length."""
    if not message:
        return ""

    text = _URL_RE.sub("[URL]", message)
    for pattern in _CREDENTIAL_PATTERNS:
        text = pattern.sub("[REDACTED]", text)
    text = _PATH_TOKEN_RE.sub("[PATH]", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()

    if len(text) > limit:
        text = text[: limit - 3].rstrip() + "..."
    return text


def internal_error(exc: BaseException, prefix: str = "Export failed") -> ApiError:
    detail = sanitize_error_message(str(exc))
    if detail:
        message = f"{prefix}: {detail}"
    else:
        message = "An unexpected error occurred. Please try again."
    return ApiError(message, status_code=500, code="INTERNAL_ERROR")
