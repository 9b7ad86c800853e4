"""Export conversations as Markdown, shareable text, or JSON."""

import json
import re
from datetime import datetime, timezone
from typing import Optional

from .core import USER, Conversation, Message


def conversation_to_markdown(
    conversation: Conversation,
    messages: list[Message],
    generated_at: Optional[datetime] = None,
) -> str:
    """Export a conversation as a numbered Markdown chat history."""
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        f"# Chat History: {conversation.display_name}",
        "",
        f"Generated on: {_format_datetime(generated_at)}",
        "",
        f"Total Messages: {len(messages)}",
        "",
        "---",
        "",
    ]

    for number, msg in enumerate(messages, start=1):
        role_label = "You" if msg.role == USER else "Assistant"
        ts = ms_to_datetime(msg.timestamp)
        when = _format_datetime(ts) if ts else "Unknown time"
        lines.append(f"### {role_label} (Message #{number}) - {when}")
        lines.append("")
        lines.append(msg.text)
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def conversation_to_share_text(
    name: str,
    messages: list[Message],
    exported_at: Optional[datetime] = None,
) -> str:
    """Export a conversation in the compact format used for sharing."""
    exported_at = exported_at or datetime.now(timezone.utc)
    header = f"# Shared Chat: {name}\n\nExported on: {_format_datetime(exported_at)}\n\n---\n\n"
    body = "\n\n---\n\n".join(
        f"{'User' if msg.role == USER else 'Assistant'}: {msg.text}" for msg in messages
    )
    return header + body


def conversation_to_json(conversation: Conversation, messages: list[Message]) -> str:
    """Export a conversation and its messages as structured JSON."""
    data = {
        "conversation": {
            "id": conversation.id,
            "name": conversation.display_name,
            "created_at": conversation.created_at,
            "last_updated_at": conversation.last_updated_at,
            "message_count": len(messages),
        },
        "messages": [message_to_dict(msg) for msg in messages],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)


def message_to_dict(msg: Message) -> dict:
    return {
        "role": msg.role,
        "text": msg.text,
        "timestamp": msg.timestamp,
        "is_action": msg.is_action,
    }


def safe_filename(name: str, suffix: str = "_chat_history.md") -> str:
    """Build a filesystem-safe file name from a chat name."""
    return re.sub(r"[^a-zA-Z0-9]", "_", name) + suffix


def ms_to_datetime(ms) -> Optional[datetime]:
    """Convert millisecond timestamp to datetime, or None."""
    if ms is None or isinstance(ms, bool):
        return None
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OSError, OverflowError):
        return None


def _format_datetime(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M")
