"""Read-only access to Cursor's state.vscdb key-value stores.

Cursor keeps everything in SQLite files with a two-column layout
(``key TEXT, value BLOB``) spread over a couple of tables whose names
changed between releases. This module is the only place that touches
those files. A store that cannot be opened behaves like an empty one:
callers get ``None`` or empty collections, never an exception.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from .core import StoreRecord

logger = logging.getLogger(__name__)

ITEM_TABLE = "ItemTable"
DISK_KV_TABLE = "cursorDiskKV"

# Composer index key, by Cursor version
COMPOSER_INDEX_KEYS = (
    "composer.composerData",
    "cursor.composerData",
    "cursorComposerData",
    "workbench.panel.composer",
)

# Tables holding per-conversation bodies, tried in order
CONVERSATION_TABLES = (DISK_KV_TABLE, ITEM_TABLE)
CONVERSATION_KEY_PREFIX = "composerData"

_KNOWN_TABLES = frozenset(CONVERSATION_TABLES)


def conversation_key(conversation_id: str) -> str:
    return f"{CONVERSATION_KEY_PREFIX}:{conversation_id}"


def parse_value(record: Optional[StoreRecord]) -> Any:
    """Parse a record's JSON value, returning None for missing or corrupt data."""
    if record is None or not record.value:
        return None
    try:
        return json.loads(record.value)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt value under key '%s': %s", record.key, e)
        return None


class StoreReader:
    """A read-only handle on one state.vscdb file.

    Use as a context manager so the connection is always closed::

        with StoreReader(db_path) as reader:
            record = reader.get("composer.composerData")
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._tables: Optional[set[str]] = None

    def __enter__(self) -> "StoreReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> bool:
        """Open the database read-only. Returns False if it is unavailable."""
        if self._conn is not None:
            return True
        if not self.db_path.is_file():
            logger.debug("Store not found: %s", self.db_path)
            return False
        try:
            self._conn = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Cannot open store %s: %s", self.db_path, e)
            self._conn = None
            return False
        return True

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._tables = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def has_table(self, name: str) -> bool:
        if self._tables is None:
            rows = self._query("SELECT name FROM sqlite_master WHERE type = 'table'")
            self._tables = {row[0] for row in rows}
        return name in self._tables

    def get(self, key: str, table: str = ITEM_TABLE) -> Optional[StoreRecord]:
        """Read a single key."""
        if not self._usable(table):
            return None
        rows = self._query(f"SELECT [key], value FROM [{table}] WHERE [key] = ?", (key,))
        return _to_record(rows[0]) if rows else None

    def get_many(self, keys: Iterable[str], table: str = ITEM_TABLE) -> dict[str, StoreRecord]:
        """Read several keys with one query, keyed by key."""
        keys = list(keys)
        if not keys or not self._usable(table):
            return {}
        placeholders = ",".join("?" for _ in keys)
        rows = self._query(
            f"SELECT [key], value FROM [{table}] WHERE [key] IN ({placeholders})", keys
        )
        records = (_to_record(row) for row in rows)
        return {r.key: r for r in records}

    def get_prefix(self, prefix: str, table: str = ITEM_TABLE) -> list[StoreRecord]:
        """Read every key starting with prefix, in key order."""
        if not self._usable(table):
            return []
        rows = self._query(
            f"SELECT [key], value FROM [{table}] WHERE substr([key], 1, ?) = ? ORDER BY [key]",
            (len(prefix), prefix),
        )
        return [_to_record(row) for row in rows]

    def first_parsed(
        self,
        keys: Iterable[str],
        table: str = ITEM_TABLE,
        accept: Optional[Callable[[Any], bool]] = None,
    ) -> Optional[tuple[str, Any]]:
        """Return (key, value) for the first candidate key that parses.

        Keys whose value is missing, corrupt or rejected by ``accept``
        are skipped.
        """
        for key in keys:
            value = parse_value(self.get(key, table))
            if value is None:
                continue
            if accept is not None and not accept(value):
                logger.debug("Value under '%s' has an unexpected shape, skipping", key)
                continue
            return key, value
        return None

    def get_conversation(self, conversation_id: str) -> Any:
        """Return the parsed body of one conversation, or None."""
        key = conversation_key(conversation_id)
        for table in CONVERSATION_TABLES:
            value = parse_value(self.get(key, table))
            if value is not None:
                return value
        return None

    def get_conversations(self, conversation_ids: Iterable[str]) -> dict[str, Any]:
        """Batched get_conversation: parsed bodies keyed by conversation id.

        An id is resolved from the first table holding a parseable value
        for it.
        """
        remaining = list(dict.fromkeys(conversation_ids))
        found: dict[str, Any] = {}
        for table in CONVERSATION_TABLES:
            if not remaining:
                break
            records = self.get_many((conversation_key(cid) for cid in remaining), table)
            for cid in list(remaining):
                value = parse_value(records.get(conversation_key(cid)))
                if value is not None:
                    found[cid] = value
                    remaining.remove(cid)
        return found

    # ── Private helpers ──────────────────────────────────────────────

    def _usable(self, table: str) -> bool:
        if table not in _KNOWN_TABLES:
            raise ValueError(f"Unknown table: {table}")
        if not self.open():
            return False
        if not self.has_table(table):
            logger.debug("Table %s missing in %s", table, self.db_path)
            return False
        return True

    def _query(self, sql: str, params: Iterable = ()) -> list[tuple]:
        if self._conn is None:
            return []
        try:
            cur = self._conn.execute(sql, tuple(params))
            return cur.fetchall()
        except sqlite3.Error as e:
            logger.warning("Query failed on %s: %s", self.db_path, e)
            return []


def _to_record(row: tuple) -> StoreRecord:
    key, value = row
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    elif value is None:
        value = ""
    return StoreRecord(key=key, value=str(value))
