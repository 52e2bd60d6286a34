"""Utility functions for domain models."""

import hashlib
import math
from datetime import UTC, datetime
from uuid import uuid4

# Rough estimate for English text
CHARS_PER_TOKEN = 4


def utc_now() -> datetime:
    """Get the current UTC datetime with timezone awareness."""
    return datetime.now(UTC)


def new_identifier() -> str:
    """Opaque identifier for records and ingested documents."""
    return uuid4().hex


def generate_content_hash(owner: str, content: str) -> str:
    """Deduplication key for a chunk: sha256 of ``owner:content`` (trimmed)."""
    return hashlib.sha256(f"{owner}:{content.strip()}".encode()).hexdigest()


def estimate_token_count(content: str) -> int:
    """Approximate token length of a chunk."""
    return math.ceil(len(content) / CHARS_PER_TOKEN)
