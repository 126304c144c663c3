"""Upload checks, free-text sanitization and payload field parsing."""
from __future__ import annotations

import re
from datetime import datetime

from markupsafe import Markup

from .errors import ValidationError

ALLOWED_FILE_TYPES = ("image/jpeg", "image/jpg", "image/png", "application/pdf")
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

SHORT_TEXT_LIMIT = 100
NOTES_LIMIT = 2000

FILE_TYPE_ERROR = "Unsupported file type. Upload a PDF or an image (JPG, PNG)."
FILE_SIZE_ERROR = "File is too large. The maximum size is 10 MB."

# Elements whose content is dropped along with the tags.
_BLOCK_ELEMENTS = ("script", "style", "iframe", "object", "embed", "noscript", "template")
_BLOCK_RE = re.compile(
    r"<\s*(%s)\b[^>]*>.*?<\s*/\s*\1\s*>" % "|".join(_BLOCK_ELEMENTS),
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^>]*>")
_TAG_FRAGMENT_RE = re.compile(r"<[^<>]*")
_JS_SCHEME_RE = re.compile(r"javascript\s*:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"\bon\w+\s*=", re.IGNORECASE)


def validate_file_type(content_type: str | None) -> bool:
    return (content_type or "").lower() in ALLOWED_FILE_TYPES


def validate_file_size(size: int, max_size: int = MAX_FILE_SIZE) -> bool:
    return 0 <= size <= max_size


def get_file_size_in_mb(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"


def validate_upload(content_type: str | None, size: int, max_size: int = MAX_FILE_SIZE) -> str | None:
    """Return an error message for an unacceptable upload, or None."""
    if not validate_file_type(content_type):
        return FILE_TYPE_ERROR
    if not validate_file_size(size, max_size):
        return FILE_SIZE_ERROR
    return None


def _strip_event_handlers(match: re.Match) -> str:
    return _EVENT_HANDLER_RE.sub("", match.group())


def strip_markup(value: str) -> str:
    """Reduce ``value`` to plain text; nothing that a browser would parse as markup survives.

    Whitespace and line breaks are kept as written.
    """
    text = value
    # Unescaping entities can expose new tags, so strip again until stable.
    for _ in range(3):
        stripped = Markup(_TAG_RE.sub("", _BLOCK_RE.sub("", text))).unescape()
        if stripped == text:
            break
        text = stripped
    text = _JS_SCHEME_RE.sub("", text)
    # Only an unterminated tag can still carry an event handler here.
    text = _TAG_FRAGMENT_RE.sub(_strip_event_handlers, text)
    return text.replace("<", "").replace(">", "")


def _sanitize(value: object, limit: int) -> str:
    if not value or not isinstance(value, str):
        return ""
    return strip_markup(value).strip()[:limit]


def sanitize_user_input(value: object) -> str:
    return _sanitize(value, SHORT_TEXT_LIMIT)


def sanitize_notes(value: object) -> str:
    return _sanitize(value, NOTES_LIMIT)


def validate_user_input(value: object, max_length: int = 1000) -> bool:
    return isinstance(value, str) and bool(value) and len(value) <= max_length


# --- JSON payload fields ---

MAX_ITEM_QUANTITY = 10


def parse_id(raw: object, field: str, required: bool = True) -> int | None:
    if raw is None and not required:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError(f"{field} is required" if raw is None else f"{field} must be an integer")
    return raw


def parse_quantity(raw: object, maximum: int = MAX_ITEM_QUANTITY) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError("quantity must be an integer")
    if raw < 1 or raw > maximum:
        raise ValidationError(f"quantity must be between 1 and {maximum}")
    return raw


def parse_datetime(raw: object, field: str) -> datetime | None:
    if raw in (None, ""):
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be an ISO-8601 string")
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO-8601 string") from exc
