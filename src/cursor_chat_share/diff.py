"""Summarize checkpoint inline diffs as short change descriptions.

Cursor attaches "checkpoints" to agent turns. Each one may carry an
``activeInlineDiffs`` list of pending line-range edits::

    {
        "uri": {"path": "/src/app.py"},
        "original": {"startLineNumber": 10, "endLineNumberExclusive": 12, "content": "..."},
        "modified": ["new line 1", "new line 2"],
    }

which renders as ``"Modified app.py (L10-11)"``.
"""

from typing import Any, Optional

from .fields import dig, is_number, normalize_number

SEPARATOR = " • "
UNKNOWN_FILE = "unknown"


def extract_file_changes(checkpoint: Any, after_checkpoint: Any = None) -> Optional[str]:
    """Describe the inline diffs of a checkpoint pair, or None if there are none.

    The after-checkpoint's diff list wins unless it is missing or falsy
    (None, False, 0, ""). Malformed entries are skipped; this never raises.
    """
    diffs = dig(after_checkpoint, "activeInlineDiffs")
    if _falsy(diffs):
        diffs = dig(checkpoint, "activeInlineDiffs")
    if not isinstance(diffs, list) or not diffs:
        return None

    changes = [describe_diff(d) for d in diffs if isinstance(d, dict)]
    return SEPARATOR.join(changes) if changes else None


def describe_diff(diff: dict) -> str:
    """Render one inline diff, e.g. ``"Added utils.py (L3-5)"``."""
    file_name = _file_name(diff)

    start = dig(diff, "original", "startLineNumber")
    end_exclusive = dig(diff, "original", "endLineNumberExclusive")
    if not (is_number(start) and is_number(end_exclusive)):
        return f"Modified {file_name}"

    start = normalize_number(start)
    end = normalize_number(end_exclusive - 1)
    line_range = f"L{start}" if start == end else f"L{start}-{end}"
    return f"{_change_type(diff, start, end)} {file_name} ({line_range})"


def _change_type(diff: dict, start, end) -> str:
    # Line-count heuristic: an equal-length replacement is always "Modified".
    if dig(diff, "original", "content") == "":
        return "Added"
    modified = diff.get("modified")
    if isinstance(modified, list):
        span = end - start + 1
        if not modified:
            return "Removed"
        if len(modified) > span:
            return "Added"
        if len(modified) < span:
            return "Removed"
    return "Modified"


def _file_name(diff: dict) -> str:
    for field in ("path", "external"):
        value = dig(diff, "uri", field)
        if isinstance(value, str) and value:
            return value.split("/")[-1]
    return UNKNOWN_FILE


def _falsy(value: Any) -> bool:
    # An empty list or dict still counts as present.
    if value is None or value is False or value == "":
        return True
    return is_number(value) and (value == 0 or value != value)
