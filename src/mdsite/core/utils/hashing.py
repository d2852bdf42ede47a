"""Stable digests for feed entry ids and fallback tag slugs"""

import hashlib
from typing import Optional


def digest(text: str, length: Optional[int] = None) -> str:
    """Hex SHA-256 of text, optionally truncated to length characters."""
    value = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return value[:length] if length else value
