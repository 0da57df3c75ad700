"""
payload.py - Payload normalization for document writes.

Text passes through unchanged so callers can hand over JSON they
already serialized. Everything else is encoded as compact JSON.
"""

import json
from typing import Any

from ledgerdb.errors import ConfigurationError


def normalize_payload(payload: Any, field: str = "payload") -> str:
    """
    Turn a payload into the text placed on the command line.

    Args:
        payload: Document body or patch operations
        field: Name reported when the value cannot be encoded

    Returns:
        The string itself, or compact JSON ("null" for None)

    Raises:
        ConfigurationError: If the value is not JSON serializable
    """
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"{field} is not JSON serializable: {e}",
            field=field,
            value=payload,
        ) from e
