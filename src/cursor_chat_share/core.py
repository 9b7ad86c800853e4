"""Core data models for cursor-chat-share."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

USER = "user"
ASSISTANT = "assistant"

DEFAULT_CHAT_NAME = "New Chat"
UNNAMED_CHAT = "Unnamed Chat"

Timestamp = Union[int, float]  # epoch milliseconds, as stored by Cursor


@dataclass
class Workspace:
    """A Cursor workspaceStorage entry (one opened folder)."""

    id: str  # directory name under workspaceStorage, e.g. "abc123hash"
    display_path: str  # e.g. "/Users/someone/dev/my-project"
    storage_dir: Path  # the workspaceStorage directory itself

    @property
    def db_path(self) -> Path:
        return self.storage_dir / self.id / "state.vscdb"


@dataclass
class Message:
    """A single normalized chat message."""

    role: str  # "user" | "assistant"
    text: str
    timestamp: Timestamp
    is_action: bool = False  # tool run or file edit rather than prose


@dataclass
class Conversation:
    """A composer conversation as listed in a workspace's composer index."""

    id: str
    name: Optional[str] = None
    created_at: Optional[Timestamp] = None
    last_updated_at: Optional[Timestamp] = None
    messages: list[Message] = field(default_factory=list)
    raw: dict = field(default_factory=dict)  # index entry, used as companion record

    @property
    def display_name(self) -> str:
        return self.name or UNNAMED_CHAT


@dataclass
class ComposerIndex:
    """The composer index record of a workspace."""

    key: str  # which candidate key it was found under
    conversations: list[Conversation]
    selected_ids: list[str] = field(default_factory=list)


@dataclass
class StoreRecord:
    """A raw key/value row read from a state.vscdb table."""

    key: str
    value: str


@dataclass
class ChangeState:
    """What the tracker last saw of a conversation."""

    conversation_id: str
    last_message_count: int
    last_message_timestamp: Timestamp


@dataclass(frozen=True)
class NewMessageEvent:
    """Emitted when a tracked conversation gains new assistant output."""

    conversation_id: str
    conversation_name: str
    workspace_id: str = ""
    new_message_count: int = 0
