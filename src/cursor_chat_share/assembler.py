"""Assemble canonical message lists for composer conversations.

Conversation bodies do not live in the workspace database: they are in
the *global* state.vscdb under ``composerData:<id>``. The global store
next to the workspace storage directory is tried first, then Cursor's
well-known global store.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from .classifier import Clock, classify_entries, enrich_from_turns
from .config import UnsupportedPlatformError, get_cursor_global_path
from .core import Conversation, Message
from .schema import locate_source
from .store import StoreReader

logger = logging.getLogger(__name__)


class ConversationAssembler:
    """Turns conversation ids into ordered lists of Messages.

    ``global_db_paths`` overrides the candidate global stores (mainly for
    tests); ``clock`` supplies the last-resort timestamp.
    """

    def __init__(
        self,
        global_db_paths: Optional[Sequence[Path]] = None,
        clock: Optional[Clock] = None,
    ):
        self.global_db_paths = [Path(p) for p in global_db_paths] if global_db_paths else None
        self.clock = clock

    def global_store_candidates(self, storage_dir: Path) -> list[Path]:
        """Return the global stores to search, in order, without duplicates."""
        if self.global_db_paths is not None:
            return list(self.global_db_paths)

        candidates = [Path(storage_dir).parent / "globalStorage" / "state.vscdb"]
        try:
            candidates.append(get_cursor_global_path())
        except UnsupportedPlatformError as e:
            logger.debug("No well-known global store: %s", e)
        unique = []
        for path in candidates:
            if path not in unique:
                unique.append(path)
        return unique

    def assemble(
        self,
        storage_dir: Path,
        workspace_id: str,
        conversation_id: str,
        companion: Optional[dict] = None,
    ) -> list[Message]:
        """Return the messages of one conversation, or [] if it is not stored anywhere."""
        for db_path in self.global_store_candidates(storage_dir):
            with StoreReader(db_path) as reader:
                record = reader.get_conversation(conversation_id)
            if record is None:
                continue
            logger.debug(
                "Found conversation %s (workspace %s) in %s", conversation_id, workspace_id, db_path
            )
            return self.normalize(record, companion)

        logger.debug("Conversation %s not found for workspace %s", conversation_id, workspace_id)
        return []

    def assemble_many(
        self,
        storage_dir: Path,
        workspace_id: str,
        conversations: Iterable[Conversation],
    ) -> dict[str, list[Message]]:
        """Assemble several conversations, opening each global store once.

        Conversations found in no store are absent from the result.
        """
        pending = {c.id: c for c in conversations}
        result: dict[str, list[Message]] = {}
        for db_path in self.global_store_candidates(storage_dir):
            if not pending:
                break
            with StoreReader(db_path) as reader:
                records = reader.get_conversations(pending)
            for conversation_id, record in records.items():
                conversation = pending.pop(conversation_id)
                result[conversation_id] = self.normalize(record, conversation.raw)

        if pending:
            logger.debug(
                "%d conversation(s) of workspace %s have no stored body", len(pending), workspace_id
            )
        return result

    def load_conversation(self, storage_dir: Path, workspace_id: str, conversation: Conversation) -> Conversation:
        """Fill a conversation's messages in place and return it."""
        conversation.messages = self.assemble(
            storage_dir, workspace_id, conversation.id, companion=conversation.raw
        )
        return conversation

    def normalize(self, record: Any, companion: Optional[dict] = None) -> list[Message]:
        """Normalize an already-parsed conversation body."""
        entries, record = locate_source(record, companion)
        if not entries:
            return []
        messages = classify_entries(entries, record, companion, self.clock)
        return enrich_from_turns(messages, entries)
