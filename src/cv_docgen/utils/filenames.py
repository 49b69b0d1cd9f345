"""Output filename helpers."""

from __future__ import annotations

import re
import time

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_MAX_LENGTH = 50


def sanitize_filename(name: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Keep only ``[A-Za-z0-9_-]`` and cap the length. May return ``""``."""
    if not name:
        return ""
    return _UNSAFE_RE.sub("", name)[:max_length]


def slugify(text: str) -> str:
    slug = _WHITESPACE_RE.sub("-", text.strip().lower())
    return _UNSAFE_RE.sub("", slug)


def default_filename(template_name: str, now_ms: int | None = None) -> str:
    """``cv-<template-name-slug>-<epoch-ms>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    slug = slugify(template_name) or "document"
    return f"cv-{slug}-{now_ms}"


def resolve_filename(
    requested: str | None,
    template_name: str,
    max_length: int = DEFAULT_MAX_LENGTH,
    now_ms: int | None = None,
) -> str:
    """Sanitized caller filename, or the default when nothing safe is left."""
    return sanitize_filename(requested, max_length) or default_filename(template_name, now_ms)
