"""ID helpers."""

from __future__ import annotations

import uuid


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def short_id() -> str:
    """Sixteen hex characters, used for span identifiers."""
    return uuid.uuid4().hex[:16]
