"""Turn raw conversation entries ("bubbles") into canonical messages.

A bubble may be a plain user prompt, authored assistant prose, or an
agent step that only ran tools or edited files. Fields move around
between Cursor versions, so role, text and timestamp are each resolved
from an ordered list of candidate fields with the first usable one
winning.
"""

import json
import logging
import time
from typing import Any, Callable, Iterable, Optional

from .core import ASSISTANT, USER, Message, Timestamp
from .diff import extract_file_changes
from .fields import dig, first_positive_number, first_text, is_number, normalize_number

logger = logging.getLogger(__name__)

USER_CODE = 1
ASSISTANT_CODE = 2

ACTION_PREFIX = "Action: "
COMPLEX_CONTENT = "[Complex message content]"

ROLE_FIELDS = ("role", "sender", "from")

# Any of these set means the entry came from the agent
AGENT_ACTIVITY_FIELDS = ("isCapabilityIteration", "isThought", "isAgentic")

CAPABILITY_LABELS = {
    "grep_search": "Text search",
    "read_file": "Read file",
    "edit_file": "Modified file",
    "codebase_search": "Searched codebase",
    "list_dir": "Listed directory",
    "file_search": "Searched for files",
}

TEXT_FIELDS = (
    "text",
    "content",
    "message",
    "value",
    "body",
    "data",
    "markdown",
    "plainText",
    "messageText",
    "displayText",
    "contentText",
)

TIMESTAMP_PATHS: tuple[tuple[str, ...], ...] = (
    ("timestamp",),
    ("createdAt",),
    ("time",),
    ("date",),
    ("created",),
    ("createTime",),
    ("created_at",),
    ("updatedAt",),
    ("updated_at",),
    ("lastModified",),
    ("modified",),
    ("modifiedTime",),
    ("timingInfo", "clientStartTime"),
    ("timingInfo", "clientEndTime"),
)

Clock = Callable[[], Timestamp]


def now_ms() -> int:
    return int(time.time() * 1000)


# ── Role ─────────────────────────────────────────────────────────────


def resolve_role_code(entry: Any) -> int:
    """Return the numeric role code of an entry (1 = user, 2 = assistant).

    An explicit numeric ``type`` is returned unchanged, so unknown codes
    survive until role_from_code maps them.
    """
    if not isinstance(entry, dict):
        return ASSISTANT_CODE

    entry_type = entry.get("type")
    if is_number(entry_type):
        return entry_type
    if entry_type == USER:
        return USER_CODE
    if entry_type == ASSISTANT:
        return ASSISTANT_CODE

    if any(entry.get(f) == USER for f in ROLE_FIELDS):
        return USER_CODE
    if any(entry.get(f) == ASSISTANT for f in ROLE_FIELDS):
        return ASSISTANT_CODE

    # Agent activity, and the fallback, are both assistant
    return ASSISTANT_CODE


def role_from_code(code: Any) -> str:
    return USER if code == USER_CODE else ASSISTANT


# ── Action description ───────────────────────────────────────────────


def describe_action(entry: Any) -> Optional[str]:
    """Describe the tool run or file edit an entry represents, if any."""
    if not isinstance(entry, dict):
        return None

    if dig(entry, "cachedConversationSummary", "summary"):
        changes = extract_file_changes(entry)
        if changes:
            return changes

    if entry.get("checkpoint") or entry.get("afterCheckpoint"):
        changes = extract_file_changes(entry.get("checkpoint"), entry.get("afterCheckpoint"))
        if changes:
            return changes

    capabilities = entry.get("capabilitiesRan")
    if isinstance(capabilities, dict):
        for capability, runs in capabilities.items():
            if isinstance(runs, list) and runs and capability in CAPABILITY_LABELS:
                return f"{ACTION_PREFIX}{CAPABILITY_LABELS[capability]}"

    return None


# ── Text ─────────────────────────────────────────────────────────────


def extract_rich_text(value: Any) -> str:
    """Flatten a rich-text editor document into plain text.

    Each top-level block becomes one line; the text nodes inside a block
    are joined with spaces. A JSON string that does not parse is
    returned as-is.
    """
    document = value
    if isinstance(value, str):
        try:
            document = json.loads(value)
        except json.JSONDecodeError:
            return value

    blocks = dig(document, "root", "children")
    if not isinstance(blocks, list):
        return ""

    lines = []
    for block in blocks:
        if not isinstance(block, dict):
            continue
        children = block.get("children")
        if children:
            if not isinstance(children, list):
                continue
            line = " ".join(_node_text(node) for node in children)
        else:
            line = _node_text(block)
        if line:
            lines.append(line)
    return "\n".join(lines)


def _node_text(node: Any) -> str:
    text = dig(node, "text")
    return text if isinstance(text, str) else ""


def _resolve_text(entry: dict) -> str:
    text = ""
    if entry.get("richText"):
        text = extract_rich_text(entry["richText"])
    if not text:
        text = first_text(entry, TEXT_FIELDS)
    return text


def _stringify(value: Any) -> str:
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return COMPLEX_CONTENT


# ── Timestamp ────────────────────────────────────────────────────────


def resolve_timestamp(
    entry: Any,
    record: Any = None,
    companion: Any = None,
    now: Optional[Clock] = None,
) -> Timestamp:
    """Pick the entry's timestamp, falling back to the conversation's, then now."""
    candidates = [dig(entry, *path) for path in TIMESTAMP_PATHS]
    candidates.append(dig(record, "lastUpdatedAt"))
    candidates.append(dig(companion, "lastUpdatedAt"))
    found = first_positive_number(candidates)
    if found is None:
        found = (now or now_ms)()
    return normalize_number(found)


# ── Classification ───────────────────────────────────────────────────


def classify_entry(
    entry: Any,
    record: Any = None,
    companion: Any = None,
    now: Optional[Clock] = None,
) -> Optional[Message]:
    """Classify one raw entry, returning None if it has no displayable text.

    ``record`` is the conversation body the entry came from and
    ``companion`` its composer-index entry; both only feed the
    timestamp fallback.
    """
    role = role_from_code(resolve_role_code(entry))
    action = describe_action(entry)
    is_action = False
    text = ""

    if isinstance(entry, str):
        text = entry
    elif isinstance(entry, dict):
        text = _resolve_text(entry)

        if not text.strip() and action:
            text = action
            is_action = True

        raw_text = entry.get("text")
        if not text and isinstance(raw_text, (dict, list)):
            text = _stringify(raw_text)
    else:
        logger.debug("Skipping entry of type %s", type(entry).__name__)
        return None

    if text and action and not is_action:
        text = f"{action}\n\n{text}"

    if not text:
        if not action:
            return None
        text = action

    is_action = is_action or action is not None
    if is_action and text.startswith(ACTION_PREFIX):
        text = text[len(ACTION_PREFIX):]

    return Message(
        role=role,
        text=text,
        timestamp=resolve_timestamp(entry, record, companion, now),
        is_action=is_action,
    )


def classify_entries(
    entries: Iterable[Any],
    record: Any = None,
    companion: Any = None,
    now: Optional[Clock] = None,
) -> list[Message]:
    """Classify entries in source order, dropping the empty ones."""
    messages = []
    for entry in entries:
        message = classify_entry(entry, record, companion, now)
        if message is not None:
            messages.append(message)
    return messages


# ── Enrichment ───────────────────────────────────────────────────────


def enrich_from_turns(messages: list[Message], entries: list) -> list[Message]:
    """Prepend file-change summaries found on the matching original turn.

    A message is matched to the first raw entry whose
    ``timingInfo.clientEndTime`` equals its timestamp exactly; messages
    without such a match are left untouched. Messages are updated in
    place and the same list is returned.
    """
    turns = [e for e in entries if is_number(dig(e, "timingInfo", "clientEndTime"))]
    if not turns:
        return messages

    for message in messages:
        turn = next(
            (t for t in turns if t["timingInfo"]["clientEndTime"] == message.timestamp),
            None,
        )
        if turn is None:
            continue
        for summary in _turn_change_summaries(turn):
            if summary not in message.text:
                message.text = f"{summary}\n\n{message.text}"
                message.is_action = True
    return messages


def _turn_change_summaries(turn: dict) -> list[str]:
    summaries = []
    if dig(turn, "cachedConversationSummary", "summary"):
        changes = extract_file_changes(turn)
        if changes:
            summaries.append(changes)
    if turn.get("checkpoint") or turn.get("afterCheckpoint"):
        changes = extract_file_changes(turn.get("checkpoint"), turn.get("afterCheckpoint"))
        if changes and changes not in summaries:
            summaries.append(changes)
    return summaries
