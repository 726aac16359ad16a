"""Key rewriting for untrusted profile documents.

The document store rejects keys that contain a literal '.' or start with '$'.
sanitize() rebuilds a nested structure depth first with every such key
renamed; the input is never mutated.
"""

from __future__ import annotations

from typing import Any

SEPARATOR = "."
RESERVED_SIGIL = "$"


def clean_key(key: str) -> str:
    """Return the storage-safe spelling of a single key."""
    if SEPARATOR in key:
        key = key.replace(SEPARATOR, "_")
    if key.startswith(RESERVED_SIGIL):
        key = "_" + key[1:]
    return key


def sanitize(entry: Any) -> Any:
    """Return a copy of entry with every mapping key made storage-safe.

    Mappings nested in mappings or lists are rewritten at every depth.
    If two keys collapse onto the same cleaned key, the later one wins.
    """
    if isinstance(entry, dict):
        cleaned: dict[Any, Any] = {}
        for key, value in entry.items():
            new_key = clean_key(key) if isinstance(key, str) else key
            cleaned[new_key] = sanitize(value)
        return cleaned
    if isinstance(entry, (list, tuple)):
        return [sanitize(item) for item in entry]
    return entry
