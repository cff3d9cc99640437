"""Path codec: segment sequences, comparison keys, and slugs.

Rules shared by every store:
- A path is an ordered list of segment names; the root is ``[]``.
- The comparison key joins segments with ``/``; the root key is ``""``.
- No segment may contain the separator, be blank, or be ``.``/``..``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from localdrive.exceptions import ValidationError

SEPARATOR = "/"

RECENT = "Recent"
STARRED = "Starred"
TRASH = "Trash"
SHARED = "Shared with me"
RESERVED_DIRECTORIES = frozenset({RECENT, STARRED, TRASH, SHARED})

_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_RE = re.compile(r"[^\w\-.]+")
_HYPHENS_RE = re.compile(r"-{2,}")


def encode(segments: Sequence[str]) -> str:
    """Join segments into the canonical comparison key."""
    return SEPARATOR.join(segments)


def decode(key: str | None) -> list[str]:
    """Split a comparison key back into segments (``""`` -> root)."""
    if not key:
        return []
    return [s for s in key.split(SEPARATOR) if s]


def identity_path(path: Sequence[str], name: str) -> list[str]:
    """Full location of a folder: its parent path plus its own name."""
    return [*path, name]


def is_within(key: str, ancestor_key: str) -> bool:
    """True if ``key`` equals ``ancestor_key`` or lies below it (segment-wise)."""
    return key == ancestor_key or key.startswith(ancestor_key + SEPARATOR)


def rebase(segments: Sequence[str], old_prefix: Sequence[str], new_prefix: Sequence[str]) -> list[str]:
    """Replace ``old_prefix`` at the head of ``segments`` with ``new_prefix``."""
    n = len(old_prefix)
    if list(segments[:n]) != list(old_prefix):
        raise ValueError(f"{encode(segments)!r} is not below {encode(old_prefix)!r}")
    return [*new_prefix, *segments[n:]]


def slugify(text: str) -> str:
    """Lowercase, hyphenated, comparison-safe form of a display name."""
    s = text.lower().strip()
    s = _WHITESPACE_RE.sub("-", s)
    s = s.replace("_", "-")
    s = _INVALID_RE.sub("", s)
    s = _HYPHENS_RE.sub("-", s)
    return s.strip("-")


def validate_name(name: str) -> str:
    """Return the stripped name or raise ``ValidationError``."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name cannot be empty")
    if SEPARATOR in cleaned:
        raise ValidationError(f"Name may not contain '{SEPARATOR}': {name!r}")
    if cleaned in (".", ".."):
        raise ValidationError(f"Invalid name: {name!r}")
    return cleaned


def validate_path(segments: Sequence[str]) -> list[str]:
    """Validate every segment of a path; returns a fresh list."""
    if isinstance(segments, str):
        raise ValidationError("Path must be a sequence of segments, not a string")
    out = []
    for seg in segments:
        if not isinstance(seg, str) or not seg.strip() or seg != seg.strip():
            raise ValidationError(f"Invalid path segment: {seg!r}")
        if SEPARATOR in seg or seg in (".", ".."):
            raise ValidationError(f"Invalid path segment: {seg!r}")
        out.append(seg)
    return out


def is_reserved(segments: Sequence[str]) -> bool:
    """True if the path points into a reserved virtual directory."""
    return bool(segments) and segments[0] in RESERVED_DIRECTORIES


def split_extension(name: str) -> str:
    """Substring after the last ``.``; empty when there is none."""
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1]


def unique_name(name: str, taken: set[str]) -> str:
    """First of ``name``, ``name (1)``, ``name (2)``... not in ``taken``.

    The counter goes before the extension. ``taken`` is compared
    case-insensitively and the chosen name is added to it.
    """
    stem, ext = name, ""
    if "." in name.lstrip("."):
        stem, ext = name.rsplit(".", 1)
        ext = "." + ext
    candidate = name
    n = 1
    while candidate.casefold() in taken:
        candidate = f"{stem} ({n}){ext}"
        n += 1
    taken.add(candidate.casefold())
    return candidate
