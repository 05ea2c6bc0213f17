"""Prompt template overrides read from JSON.

Built-in templates live in code. A JSON object in ``INSIDE_MENTOR_PROMPTS_DIR``
may replace any of them, one key per template; an override is accepted only
when it is a string whose placeholders all exist in the built-in template.
"""

from __future__ import annotations

import json
import logging
import os
import string
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger("inside_mentor.prompts")

_FORMATTER = string.Formatter()
_CACHE: dict[str, tuple[int, dict[str, str]]] = {}


def _data_dir() -> Path | None:
    override = os.getenv("INSIDE_MENTOR_PROMPTS_DIR", "").strip()
    return Path(override).expanduser() if override else None


def template_fields(template: str) -> frozenset[str]:
    """Top-level placeholder names used by a ``str.format`` template.

    Raises ``ValueError`` for unbalanced braces.
    """
    fields: set[str] = set()
    for _, name, _, _ in _FORMATTER.parse(template):
        if name:
            fields.add(name.split(".", 1)[0].split("[", 1)[0])
    return frozenset(fields)


def _accepted_overrides(path: Path, payload: Mapping[str, Any], defaults: Mapping[str, str]) -> dict[str, str]:
    accepted: dict[str, str] = {}
    for name, value in payload.items():
        default = defaults.get(name)
        if default is None:
            logger.warning("Ignoring unknown prompt template %r in %s", name, path)
            continue
        if not isinstance(value, str) or not value.strip():
            logger.warning("Prompt template %r in %s must be a non-empty string", name, path)
            continue
        try:
            fields = template_fields(value)
        except ValueError as exc:
            logger.warning("Prompt template %r in %s is malformed (%s)", name, path, exc)
            continue
        unknown = fields - template_fields(default)
        if unknown:
            logger.warning(
                "Prompt template %r in %s uses unknown placeholders: %s",
                name,
                path,
                ", ".join(sorted(unknown)),
            )
            continue
        accepted[name] = value
    return accepted


def load_templates(filename: str, defaults: Mapping[str, str]) -> dict[str, str]:
    """Built-in ``defaults`` with any valid overrides from ``filename`` applied.

    The file is re-read only when its mtime changes.
    """
    directory = _data_dir()
    if directory is None:
        return dict(defaults)

    path = directory / filename
    try:
        mtime_ns = path.stat().st_mtime_ns
    except OSError:
        return dict(defaults)

    cache_key = str(path)
    cached = _CACHE.get(cache_key)
    if cached is not None and cached[0] == mtime_ns:
        return dict(cached[1])

    templates = dict(defaults)
    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to parse prompt JSON %s (%s). Using built-in templates.", path, exc)
        payload = {}
    if not isinstance(payload, dict):
        logger.warning("Prompt JSON root must be an object: %s (using built-in templates)", path)
        payload = {}

    templates.update(_accepted_overrides(path, payload, defaults))
    _CACHE[cache_key] = (mtime_ns, templates)
    return dict(templates)


def clear_prompt_cache() -> None:
    _CACHE.clear()
