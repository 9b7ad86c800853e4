"""Tests for export functionality."""

import json
from datetime import datetime, timezone

import pytest

from cursor_chat_share.core import Conversation, Message
from cursor_chat_share.export import (
    conversation_to_json,
    conversation_to_markdown,
    conversation_to_share_text,
    ms_to_datetime,
    safe_filename,
)

T = int(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)
NOW = datetime(2025, 2, 1, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_conversation():
    return Conversation(
        id="comp-uuid-001",
        name="Fix authentication bug",
        created_at=T,
        last_updated_at=T + 60000,
    )


@pytest.fixture
def sample_messages():
    return [
        Message(role="user", text="Fix the login bug in auth.ts", timestamp=T),
        Message(
            role="assistant",
            text="I'll fix the authentication bug. Here's the change:\n\n```typescript\nconst token = await validateToken(input);\n```",
            timestamp=T + 30000,
        ),
        Message(role="assistant", text="Modified auth.ts (L10-11)", timestamp=T + 40000, is_action=True),
    ]


class TestMarkdownExport:
    def test_includes_title_and_totals(self, sample_conversation, sample_messages):
        result = conversation_to_markdown(sample_conversation, sample_messages, generated_at=NOW)
        assert result.startswith("# Chat History: Fix authentication bug")
        assert "Generated on: 2025-02-01 09:30" in result
        assert "Total Messages: 3" in result

    def test_numbered_messages_with_roles(self, sample_conversation, sample_messages):
        result = conversation_to_markdown(sample_conversation, sample_messages, generated_at=NOW)
        assert "### You (Message #1) - 2025-01-15 10:00" in result
        assert "### Assistant (Message #2) - 2025-01-15 10:00" in result
        assert "### Assistant (Message #3)" in result

    def test_preserves_code_fences(self, sample_conversation, sample_messages):
        result = conversation_to_markdown(sample_conversation, sample_messages)
        assert "```typescript" in result
        assert "validateToken" in result

    def test_unnamed_chat(self, sample_messages):
        result = conversation_to_markdown(Conversation(id="x"), sample_messages)
        assert result.startswith("# Chat History: Unnamed Chat")


class TestShareExport:
    def test_header_and_blocks(self, sample_messages):
        result = conversation_to_share_text("Fix authentication bug", sample_messages, exported_at=NOW)
        assert result.startswith("# Shared Chat: Fix authentication bug\n\nExported on: 2025-02-01 09:30\n\n---\n\n")
        assert "User: Fix the login bug in auth.ts\n\n---\n\nAssistant: I'll fix" in result
        assert result.endswith("Assistant: Modified auth.ts (L10-11)")


class TestJsonExport:
    def test_produces_valid_json(self, sample_conversation, sample_messages):
        data = json.loads(conversation_to_json(sample_conversation, sample_messages))
        assert data["conversation"]["id"] == "comp-uuid-001"
        assert data["conversation"]["name"] == "Fix authentication bug"
        assert data["conversation"]["message_count"] == 3
        assert len(data["messages"]) == 3

    def test_message_fields(self, sample_conversation, sample_messages):
        data = json.loads(conversation_to_json(sample_conversation, sample_messages))
        last = data["messages"][2]
        assert last == {
            "role": "assistant",
            "text": "Modified auth.ts (L10-11)",
            "timestamp": T + 40000,
            "is_action": True,
        }


class TestHelpers:
    def test_safe_filename(self):
        assert safe_filename("Fix auth/bug!") == "Fix_auth_bug__chat_history.md"
        assert safe_filename("a b", ".json") == "a_b.json"

    def test_ms_to_datetime(self):
        assert ms_to_datetime(T) == datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
        assert ms_to_datetime(None) is None
        assert ms_to_datetime(True) is None
        assert ms_to_datetime(10**20) is None
