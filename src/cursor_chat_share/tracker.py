"""Per-conversation change tracking.

The tracker remembers, for each conversation id, how many messages it
had and the newest timestamp seen. Each observation compares fresh data
against that state and reports genuinely new assistant output.

State lifecycle: created empty with the tracker, updated on every
observation, cleared only by ``reset()``.
"""

import logging
import threading
from typing import Iterable, Optional

from .core import (
    ASSISTANT,
    DEFAULT_CHAT_NAME,
    ChangeState,
    Conversation,
    Message,
    NewMessageEvent,
    Timestamp,
)
from .fields import is_number

logger = logging.getLogger(__name__)


def is_tracked(conversation: Conversation, selected_ids: Iterable[str]) -> bool:
    """Selected conversations and renamed ones are tracked; scratch chats are not."""
    if conversation.id in set(selected_ids):
        return True
    return bool(conversation.name) and conversation.name != DEFAULT_CHAT_NAME


def max_timestamp(messages: Iterable[Message], baseline: Timestamp = 0) -> Timestamp:
    latest = baseline
    for message in messages:
        if is_number(message.timestamp) and message.timestamp > latest:
            latest = message.timestamp
    return latest


class ChangeTracker:
    """Owns the ChangeState map. Safe to share between threads."""

    def __init__(self):
        self._states: dict[str, ChangeState] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def get(self, conversation_id: str) -> Optional[ChangeState]:
        with self._lock:
            return self._states.get(conversation_id)

    def states(self) -> dict[str, ChangeState]:
        """Snapshot of the current state map."""
        with self._lock:
            return dict(self._states)

    def reset(self) -> None:
        """Forget everything; the next observation of each conversation is a first sighting."""
        with self._lock:
            self._states.clear()
        logger.info("Change tracker reset")

    def observe(
        self,
        conversation_id: str,
        name: str,
        messages: list[Message],
        baseline_timestamp: Timestamp = 0,
        workspace_id: str = "",
    ) -> Optional[NewMessageEvent]:
        """Record a fresh view of a conversation.

        Returns an event when new messages include an assistant message
        newer than anything seen before. The first observation of a
        conversation never produces an event. The stored state is
        replaced on every call.
        """
        current = ChangeState(
            conversation_id=conversation_id,
            last_message_count=len(messages),
            last_message_timestamp=max_timestamp(messages, baseline_timestamp or 0),
        )

        with self._lock:
            previous = self._states.get(conversation_id)
            self._states[conversation_id] = current

        if previous is None:
            logger.debug(
                "Tracking %s: %d messages", conversation_id, current.last_message_count
            )
            return None

        grew = (
            current.last_message_count > previous.last_message_count
            or current.last_message_timestamp > previous.last_message_timestamp
        )
        if not grew:
            return None

        new_count = current.last_message_count - previous.last_message_count
        if new_count <= 0:
            logger.debug("Conversation %s updated without new messages", conversation_id)
            return None

        new_messages = messages[-new_count:]
        fresh = [
            m for m in new_messages
            if m.role == ASSISTANT
            and is_number(m.timestamp)
            and m.timestamp > previous.last_message_timestamp
        ]
        logger.debug(
            "Conversation %s: %d new message(s), %d new from assistant",
            conversation_id, new_count, len(fresh),
        )
        if not fresh:
            return None

        return NewMessageEvent(
            conversation_id=conversation_id,
            conversation_name=name,
            workspace_id=workspace_id,
            new_message_count=new_count,
        )

    def observe_conversation(
        self, conversation: Conversation, workspace_id: str = ""
    ) -> Optional[NewMessageEvent]:
        """observe() for an assembled Conversation."""
        return self.observe(
            conversation.id,
            conversation.display_name,
            conversation.messages,
            baseline_timestamp=conversation.last_updated_at or 0,
            workspace_id=workspace_id,
        )
