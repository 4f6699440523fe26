"""File naming helpers for persisted media."""

import re

_UNSAFE = re.compile(r"[^\w\-]+")


def slugify(title: str, max_length: int = 60) -> str:
    """Turn a title into a filesystem-safe name fragment."""
    slug = _UNSAFE.sub("_", title.strip().lower()).strip("_")
    return slug[:max_length] or "untitled"
