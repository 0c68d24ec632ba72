"""
Bundle version normalization and semantic-version validation.
"""

from __future__ import annotations

import re

from appdist.errors import ValidationError

SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)
_NUMERIC_RE = re.compile(r"^\d+$")


def is_valid_semver(value: str) -> bool:
    return bool(SEMVER_RE.match(value or ""))


def normalize_version(raw: str) -> str:
    """
    Expand relaxed version strings to three components.

    ``"2"`` becomes ``"2.0.0"`` and ``"2.5"`` becomes ``"2.5.0"``. Valid semantic
    versions and anything else are returned unchanged; the latter will fail
    ``is_valid_semver``.
    """
    value = (raw or "").strip()
    if is_valid_semver(value):
        return value
    parts = value.split(".")
    if not all(_NUMERIC_RE.match(part) for part in parts):
        return value
    if len(parts) == 1:
        return f"{parts[0]}.0.0"
    if len(parts) == 2:
        return f"{parts[0]}.{parts[1]}.0"
    return value


def require_version(raw: str, label: str = "bundle version") -> str:
    """Return the normalized version or raise a client error naming ``raw``."""
    normalized = normalize_version(raw)
    if not is_valid_semver(normalized):
        raise ValidationError(
            f"Invalid {label} format: {raw}. "
            "Please use semantic versioning (e.g., 1.0.0)."
        )
    return normalized
