"""
Document sanitizer.

The store rejects absent values, so every document is cleaned before a
write: None-valued keys are dropped and None list items removed, at every
depth. Tuples become lists. Everything else passes through unchanged, so
sanitizing is idempotent.
"""

from typing import Any


def sanitize_document(value: Any) -> Any:
    """Recursively strip absent (None) values from a document."""
    if isinstance(value, dict):
        return {
            key: sanitize_document(item)
            for key, item in value.items()
            if item is not None
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_document(item) for item in value if item is not None]
    return value
