"""File names and document titles."""

import re
import sys

from bike_outliner.config import (
    ALTERNATE_EXTENSION,
    CANONICAL_EXTENSION,
    DEFAULT_FILE_STEM,
    FALLBACK_TITLE,
    RECOGNIZED_EXTENSIONS,
    RESTRICTIVE_PLATFORMS,
)

_ILLEGAL_CHARS = re.compile(r'[\\/:*?"<>|]')

# Labels shown instead of a file name; never used as a title or file name.
PLACEHOLDER_NAMES = frozenset({"No file", "Unsaved Draft", "App Storage", "New App File"})
_ORIGIN_SUFFIXES = (" (copy)", " (new)", " (draft)")
DIRTY_MARKER = "*"


def target_extension(platform: str = sys.platform) -> str:
    if platform in RESTRICTIVE_PLATFORMS:
        return ALTERNATE_EXTENSION
    return CANONICAL_EXTENSION


def strip_extension(name: str) -> str:
    """Remove a recognized outline extension from ``name`` (case-insensitive)."""
    lowered = name.lower()
    for extension in RECOGNIZED_EXTENSIONS:
        if lowered.endswith(extension):
            return name[: -len(extension)]
    return name


def fix_file_name(name: str | None, *, platform: str = sys.platform) -> str:
    """Turn an arbitrary name into a safe outline file name.

    Illegal characters are dropped, a recognized extension is replaced by the
    platform's outline extension, and an empty result falls back to
    ``outline.bike``.
    """
    extension = target_extension(platform)
    stem = strip_extension(_ILLEGAL_CHARS.sub("", name or "")).strip()
    if not stem or stem.strip(".") == "":
        stem = DEFAULT_FILE_STEM
    return stem + extension


def clean_display_name(display: str | None) -> str | None:
    """Return the file-like part of a display label, or None for placeholders."""
    if not display:
        return None
    name = display.replace(DIRTY_MARKER, "")
    for suffix in _ORIGIN_SUFFIXES:
        name = name.replace(suffix, "")
    name = name.strip()
    if not name or name in PLACEHOLDER_NAMES:
        return None
    return name


def derive_title(
    external_name: str | None = None,
    store_name: str | None = None,
    display_name: str | None = None,
) -> str:
    """Pick the document title from the most authoritative name available."""
    if external_name:
        return strip_extension(external_name)
    if store_name:
        return strip_extension(store_name)
    cleaned = clean_display_name(display_name)
    if cleaned:
        return strip_extension(cleaned)
    return FALLBACK_TITLE
