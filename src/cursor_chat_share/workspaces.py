"""Discover Cursor workspaces and read their composer indexes.

Every folder opened in Cursor gets a directory under workspaceStorage
holding a ``workspace.json`` (which folder it is) and a ``state.vscdb``
(whose ItemTable lists the folder's composer conversations).
"""

import json
import logging
import urllib.parse
from pathlib import Path
from typing import Any, Iterable, Optional

from .config import get_cursor_workspace_path
from .core import ComposerIndex, Conversation, Workspace
from .fields import is_number, normalize_number
from .store import COMPOSER_INDEX_KEYS, StoreReader

logger = logging.getLogger(__name__)


class WorkspaceLocator:
    """Find workspaces under a workspaceStorage directory."""

    def __init__(self, storage_dir: Path | None = None):
        self._storage_dir = Path(storage_dir) if storage_dir else None

    @property
    def storage_dir(self) -> Path:
        if self._storage_dir is None:
            self._storage_dir = get_cursor_workspace_path()
        return self._storage_dir

    def list_workspaces(self) -> list[Workspace]:
        """Return every workspace that has a state database and a folder."""
        base = self.storage_dir
        if not base.is_dir():
            return []

        workspaces = []
        for ws_dir in sorted(base.iterdir()):
            workspace = self._load(ws_dir)
            if workspace is not None:
                workspaces.append(workspace)
        return workspaces

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        if workspace_id in ("", ".", ".."):
            return None
        ws_dir = self.storage_dir / workspace_id
        if ws_dir.parent != self.storage_dir:
            return None
        return self._load(ws_dir)

    def find_workspaces(self, project_names: Iterable[str]) -> list[Workspace]:
        """Return workspaces whose folder basename matches one of project_names.

        This is how the editor's currently open folders are mapped to
        their storage directories.
        """
        wanted = list(project_names)
        found = []
        all_workspaces = self.list_workspaces()
        for name in wanted:
            for workspace in all_workspaces:
                if project_name(workspace.display_path) == name and workspace not in found:
                    found.append(workspace)
        if not found:
            logger.debug("No workspace matches %s", wanted)
        return found

    def read_composer_index(self, workspace: Workspace) -> Optional[ComposerIndex]:
        """Read the workspace's composer index, or None if it has none."""
        with StoreReader(workspace.db_path) as reader:
            hit = reader.first_parsed(COMPOSER_INDEX_KEYS, accept=_looks_like_index)
        if hit is None:
            return None
        key, data = hit
        return parse_composer_index(key, data)

    # ── Private helpers ──────────────────────────────────────────────

    def _load(self, ws_dir: Path) -> Optional[Workspace]:
        if not ws_dir.is_dir() or not (ws_dir / "state.vscdb").exists():
            return None
        display_path = read_workspace_path(ws_dir)
        if not display_path:
            return None
        return Workspace(id=ws_dir.name, display_path=display_path, storage_dir=ws_dir.parent)


def read_workspace_path(ws_dir: Path) -> Optional[str]:
    """Extract the project path from workspace.json."""
    ws_json = ws_dir / "workspace.json"
    if not ws_json.exists():
        return None
    try:
        data = json.loads(ws_json.read_text(encoding="utf-8"))
    except (ValueError, OSError) as e:
        logger.warning("Failed to read workspace.json in %s: %s", ws_dir, e)
        return None
    if not isinstance(data, dict):
        return None
    folder_uri = data.get("folder", "")
    if not isinstance(folder_uri, str):
        return None
    if folder_uri.startswith("file://"):
        return urllib.parse.unquote(folder_uri[7:])
    return folder_uri or None


def project_name(display_path: str) -> str:
    """Return the folder's basename, e.g. "my-project"."""
    return display_path.rstrip("/\\").replace("\\", "/").split("/")[-1]


def parse_composer_index(key: str, data: dict) -> ComposerIndex:
    """Build a ComposerIndex from a parsed composer-index record."""
    conversations = []
    for raw in data.get("allComposers", []):
        if not isinstance(raw, dict):
            continue
        composer_id = raw.get("composerId")
        if not isinstance(composer_id, str) or not composer_id:
            continue
        name = raw.get("name")
        conversations.append(Conversation(
            id=composer_id,
            name=name.strip() if isinstance(name, str) and name.strip() else None,
            created_at=_timestamp(raw.get("createdAt")),
            last_updated_at=_timestamp(raw.get("lastUpdatedAt")),
            raw=raw,
        ))

    selected = data.get("selectedComposerIds")
    selected_ids = [s for s in selected if isinstance(s, str)] if isinstance(selected, list) else []
    return ComposerIndex(key=key, conversations=conversations, selected_ids=selected_ids)


def _looks_like_index(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("allComposers"), list)


def _timestamp(value: Any):
    return normalize_number(value) if is_number(value) else None
