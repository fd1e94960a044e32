"""Utility helpers for keyword, author, and filename normalization."""

from __future__ import annotations

import re

KEYWORD_SPLIT_PATTERN = re.compile(r"[,\s]+")
UNSAFE_NAME_PATTERN = re.compile(r"[^a-z0-9._-]")
REPEATED_UNDERSCORE_PATTERN = re.compile(r"_{2,}")


def split_authors(value: str) -> list[str]:
    """Split a comma-delimited author string into trimmed, non-empty names."""
    return [name.strip() for name in (value or "").split(",") if name.strip()]


def normalize_keywords(value: str, required: str) -> frozenset[str]:
    """Return the deduplicated keyword set, always containing ``required`` once.

    Any casing variant of the required keyword collapses into its canonical form.
    """
    keywords = {kw.strip() for kw in KEYWORD_SPLIT_PATTERN.split(value or "") if kw.strip()}
    canonical = required.strip()
    keywords = {kw for kw in keywords if kw.lower() != canonical.lower()}
    keywords.add(canonical)
    return frozenset(keywords)


def sanitize_file_name(file_name: str) -> str:
    """Lowercase the stem and replace anything outside ``[a-z0-9._-]`` with underscores."""
    stem, _, extension = file_name.partition(".")
    stem = re.sub(r"\s+", "_", stem.lower())
    stem = UNSAFE_NAME_PATTERN.sub("_", stem)
    stem = REPEATED_UNDERSCORE_PATTERN.sub("_", stem).strip("_")
    return f"{stem}.{extension}" if extension else stem
