"""Wires the locator, assembler, tracker and poller together.

One ChatEngine serves both the web surface and the CLI. It owns the
change-tracking state for the lifetime of the process.
"""

import logging
from collections import deque
from pathlib import Path
from typing import Iterable, Optional

from .assembler import ConversationAssembler
from .config import Settings, load_settings, save_settings
from .core import Conversation, Message, NewMessageEvent, Workspace
from .poller import Notify, Poller
from .tracker import ChangeTracker
from .workspaces import WorkspaceLocator

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 100


class ChatEngine:
    """Facade over chat extraction and new-message tracking."""

    def __init__(
        self,
        storage_dir: Path | None = None,
        global_db_paths: Optional[list[Path]] = None,
        settings: Optional[Settings] = None,
        settings_path: Path | None = None,
        project_names: Optional[Iterable[str]] = None,
        notify: Optional[Notify] = None,
    ):
        self.settings_path = settings_path
        self.settings = settings or load_settings(settings_path)
        self.locator = WorkspaceLocator(storage_dir)
        self.assembler = ConversationAssembler(global_db_paths)
        self.tracker = ChangeTracker()
        self.project_names = list(project_names) if project_names else None
        self.notifications: deque[NewMessageEvent] = deque(maxlen=MAX_NOTIFICATIONS)
        self._notify = notify
        self.poller = Poller(
            self.locator,
            self.assembler,
            self.tracker,
            notify=self._on_event,
            interval_ms=self.settings.check_interval_ms,
            workspaces=self.watched_workspaces,
        )

    # ── Workspaces & conversations ───────────────────────────────────

    def list_workspaces(self) -> list[Workspace]:
        return self.locator.list_workspaces()

    def watched_workspaces(self) -> list[Workspace]:
        """Workspaces of the configured projects, or all of them."""
        if self.project_names:
            return self.locator.find_workspaces(self.project_names)
        return self.locator.list_workspaces()

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        return self.locator.get_workspace(workspace_id)

    def list_conversations(self, workspace: Workspace) -> list[Conversation]:
        index = self.locator.read_composer_index(workspace)
        return index.conversations if index else []

    def get_conversation(self, workspace: Workspace, conversation_id: str) -> Optional[Conversation]:
        for conversation in self.list_conversations(workspace):
            if conversation.id == conversation_id:
                return conversation
        return None

    def load_messages(self, workspace: Workspace, conversation_id: str) -> list[Message]:
        conversation = self.get_conversation(workspace, conversation_id)
        companion = conversation.raw if conversation else None
        return self.assembler.assemble(
            workspace.storage_dir, workspace.id, conversation_id, companion=companion
        )

    # ── Tracking ─────────────────────────────────────────────────────

    def start(self) -> None:
        self.poller.start()

    def stop(self) -> None:
        self.poller.stop()

    def refresh(self) -> None:
        """Explicit refresh: forget all tracked state."""
        self.tracker.reset()

    def update_settings(self, check_interval_ms: int) -> Settings:
        self.settings = Settings(check_interval_ms=check_interval_ms)
        path = save_settings(self.settings, self.settings_path)
        logger.info("Settings saved to %s", path)
        self.poller.set_interval(self.settings.check_interval_ms)
        return self.settings

    def _on_event(self, event: NewMessageEvent) -> None:
        self.notifications.append(event)
        if self._notify is not None:
            self._notify(event)
