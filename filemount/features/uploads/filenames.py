from __future__ import annotations

import re
from pathlib import PurePath

_UNSAFE_CHARS_RE = re.compile(r"[^\w.\- ]+")


def sanitize_filename(value: str) -> str:
    """Return the basename of ``value`` with unsafe characters replaced by ``_``."""
    # Windows separators first so PurePath sees a single basename on every platform.
    basename = PurePath(value.replace("\\", "/")).name
    cleaned_chars: list[str] = []
    for char in basename:
        codepoint = ord(char)
        if codepoint < 32 or codepoint == 127:
            cleaned_chars.append("_")
            continue
        cleaned_chars.append(char)

    cleaned = _UNSAFE_CHARS_RE.sub("_", "".join(cleaned_chars)).strip()
    if cleaned in {"", ".", ".."}:
        return "upload"
    return cleaned


def file_extension(filename: str | None) -> str:
    if not filename:
        return ""
    return PurePath(filename).suffix.lower().lstrip(".")


def version_filename(version_name: str, filename: str) -> str:
    return f"{version_name}_{filename}"
