"""Shared test fixtures for cursor-chat-share."""

import json
import sqlite3
from datetime import datetime, timezone

import pytest

T0 = int(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)
T1 = int(datetime(2025, 1, 15, 11, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)
T2 = int(datetime(2025, 1, 15, 14, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)

WORKSPACE_ID = "abc123hash"


def make_store(db_path, items=None, disk_kv=None, tables=("ItemTable", "cursorDiskKV")):
    """Create a state.vscdb with the given key/value rows.

    Values that are not strings are JSON-encoded.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    for table in tables:
        conn.execute(f"CREATE TABLE IF NOT EXISTS {table} (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    for table, rows in (("ItemTable", items), ("cursorDiskKV", disk_kv)):
        for key, value in (rows or {}).items():
            if not isinstance(value, (str, bytes)):
                value = json.dumps(value)
            conn.execute(f"INSERT INTO {table} VALUES (?, ?)", (key, value))
    conn.commit()
    conn.close()
    return db_path


def put_rows(db_path, table, rows):
    """Insert or replace rows in an existing store."""
    conn = sqlite3.connect(str(db_path))
    for key, value in rows.items():
        if not isinstance(value, (str, bytes)):
            value = json.dumps(value)
        conn.execute(f"INSERT INTO {table} VALUES (?, ?)", (key, value))
    conn.commit()
    conn.close()


COMPOSER_INDEX = {
    "allComposers": [
        {
            "composerId": "comp-uuid-001",
            "name": "Fix auth bug",
            "createdAt": T0,
            "lastUpdatedAt": T1,
            "unifiedMode": "agent",
        },
        {
            "composerId": "comp-uuid-002",
            "name": "Add dark mode",
            "createdAt": T1 + 1000,
            "lastUpdatedAt": T2,
            "unifiedMode": "chat",
        },
        {
            "composerId": "comp-uuid-003",
            "name": "New Chat",
            "createdAt": T2,
            "lastUpdatedAt": T2,
        },
    ],
    "selectedComposerIds": ["comp-uuid-001"],
}

AUTH_CONVERSATION = {
    "composerId": "comp-uuid-001",
    "lastUpdatedAt": T1,
    "conversation": [
        # 1. User prompt
        {"type": 1, "text": "Fix the login bug in auth.ts", "timingInfo": {"clientStartTime": T0 + 1000}},
        # 2. Assistant prose
        {
            "type": 2,
            "text": "I'll update the token check.",
            "timingInfo": {"clientStartTime": T0 + 2000, "clientEndTime": T0 + 5000},
        },
        # 3. Tool run with no text
        {"type": 2, "text": "", "capabilitiesRan": {"read_file": [{"path": "auth.ts"}]}, "timingInfo": {"clientStartTime": T0 + 6000}},
        # 4. Prose plus a file edit
        {
            "type": 2,
            "text": "Done.",
            "afterCheckpoint": {
                "activeInlineDiffs": [
                    {
                        "uri": {"path": "/src/auth.ts"},
                        "original": {"startLineNumber": 10, "endLineNumberExclusive": 12, "content": "old"},
                        "modified": ["new 1", "new 2"],
                    }
                ]
            },
            "timingInfo": {"clientStartTime": T0 + 7000},
        },
        # 5. Empty bubble (dropped)
        {"type": 2, "text": ""},
        # 6. Rich-text user follow-up
        {
            "type": 1,
            "text": "",
            "richText": json.dumps({"root": {"children": [
                {"children": [{"text": "Thanks,"}, {"text": "looks good"}]},
            ]}}),
            "createdAt": T0 + 9000,
        },
    ],
}

DARK_MODE_CONVERSATION = {
    "messages": [
        {"role": "user", "content": "Add dark mode support", "timestamp": T1 + 2000},
        {"role": "assistant", "content": "Added a theme toggle with CSS variables.", "timestamp": T1 + 3000},
    ],
}

SCRATCH_CONVERSATION = {
    "conversation": [{"type": 1, "text": "hello", "timestamp": T2}],
}


@pytest.fixture(autouse=True)
def isolate_paths(tmp_path, monkeypatch):
    """Keep every test away from the real Cursor and settings directories."""
    monkeypatch.setenv("CURSOR_CHAT_SHARE_WORKSPACE_PATH", str(tmp_path / "User" / "workspaceStorage"))
    monkeypatch.setenv("CURSOR_CHAT_SHARE_SETTINGS", str(tmp_path / "settings.json"))


@pytest.fixture
def workspace_storage(tmp_path):
    """A synthetic Cursor workspaceStorage with one workspace."""
    ws_storage = tmp_path / "User" / "workspaceStorage"
    ws_dir = ws_storage / WORKSPACE_ID
    ws_dir.mkdir(parents=True)

    workspace_json = {"folder": "file:///Users/testuser/dev/my-project"}
    (ws_dir / "workspace.json").write_text(json.dumps(workspace_json), encoding="utf-8")

    make_store(ws_dir / "state.vscdb", items={"composer.composerData": COMPOSER_INDEX})
    return ws_storage


@pytest.fixture
def global_db(tmp_path):
    """A synthetic globalStorage state.vscdb holding the conversation bodies."""
    return make_store(
        tmp_path / "User" / "globalStorage" / "state.vscdb",
        items={"composerData:comp-uuid-002": DARK_MODE_CONVERSATION},
        disk_kv={
            "composerData:comp-uuid-001": AUTH_CONVERSATION,
            "composerData:comp-uuid-003": SCRATCH_CONVERSATION,
        },
    )


@pytest.fixture
def cursor_data(workspace_storage, global_db):
    """Both stores; returns the workspaceStorage path."""
    return workspace_storage
