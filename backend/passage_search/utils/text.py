"""Text processing helpers."""

from __future__ import annotations


def truncate(text: str | None, max_length: int = 100) -> str:
    """Shorten long text for logs, noting the original length."""
    if text is None:
        return "null"
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}... [Total: {len(text)} chars]"


def mask_query(query: str | None) -> str:
    """Log-safe rendering of a user query."""
    return truncate(query, 50)


def mask_secret(secret: str | None) -> str:
    """Keep the first and last four characters of a secret."""
    if not secret or not secret.strip():
        return "********"
    if len(secret) <= 8:
        return f"**** (length: {len(secret)})"
    return f"{secret[:4]}********{secret[-4:]}"
