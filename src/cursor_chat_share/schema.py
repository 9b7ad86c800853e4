"""Locate the message array inside a conversation record.

Conversation bodies have been stored under many different shapes across
Cursor releases. Rather than guessing, the known locations are listed
in a fixed priority order and the first one holding a non-empty list
wins.
"""

import json
import logging
from typing import Any, Optional

from .fields import dig
from .store import CONVERSATION_KEY_PREFIX

logger = logging.getLogger(__name__)

# Checked top to bottom; a later location is never consulted once an
# earlier one matches.
CONVERSATION_LOCATIONS: tuple[tuple[str, ...], ...] = (
    ("conversation",),
    ("messages",),
    ("history",),
    ("richText", "conversation"),
    ("richText", "messages"),
    ("status", "conversation"),
    ("context", "conversation"),
    ("bubbles",),
    ("chat", "messages"),
    ("data", "messages"),
)


def locate_entries(record: Any, companion: Optional[dict] = None) -> list:
    """Return the raw message entries of a record, or [] if none are found.

    After the record's own locations, a bare-list record is used as-is,
    then the companion's ``conversation`` list.
    """
    return locate_source(record, companion)[0]


def locate_source(record: Any, companion: Optional[dict] = None) -> tuple[list, Any]:
    """Like ``locate_entries``, also returning the record the entries belong to.

    For a wrapped store row that is the unwrapped inner record, so its
    fields (``lastUpdatedAt`` and the like) serve as fallbacks.
    """
    if record is None and companion is None:
        return [], record

    for path in CONVERSATION_LOCATIONS:
        entries = dig(record, *path)
        if _non_empty_list(entries):
            return entries, record

    if _non_empty_list(record):
        return record, record

    entries = dig(companion, "conversation")
    if _non_empty_list(entries):
        return entries, record

    inner = unwrap_store_row(record)
    if inner is not None:
        return locate_source(inner, companion)

    return [], record


def unwrap_store_row(record: Any) -> Optional[dict]:
    """Unwrap a ``{"key": "composerData:<id>", "value": ...}`` row.

    Returns the inner record only when it carries a conversation list.
    """
    if not isinstance(record, dict):
        return None
    key = record.get("key")
    value = record.get("value")
    if not (isinstance(key, str) and key.startswith(f"{CONVERSATION_KEY_PREFIX}:") and value):
        return None

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            logger.warning("Cannot parse wrapped value under '%s': %s", key, e)
            return None

    if isinstance(dig(value, "conversation"), list):
        return value
    return None


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0
