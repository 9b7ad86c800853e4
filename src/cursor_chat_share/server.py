"""FastAPI web server for cursor-chat-share."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response

from .config import MIN_CHECK_INTERVAL_MS, UnsupportedPlatformError
from .core import Conversation, Workspace
from .engine import ChatEngine
from .export import (
    conversation_to_json,
    conversation_to_markdown,
    conversation_to_share_text,
    message_to_dict,
    safe_filename,
)

logger = logging.getLogger(__name__)

# Engine (created on first use)
_engine: ChatEngine | None = None


def _get_engine() -> ChatEngine:
    """Lazily create and cache the engine."""
    global _engine
    if _engine is None:
        _engine = ChatEngine()
        logger.info("Chat engine created (interval %dms)", _engine.settings.check_interval_ms)
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = _get_engine()
    # Fails here, once, on an unsupported platform
    logger.info("Reading Cursor workspaces from %s", engine.locator.storage_dir)
    engine.start()
    try:
        yield
    finally:
        engine.stop()


app = FastAPI(title="cursor-chat-share", version="0.1.0", lifespan=lifespan)


@app.exception_handler(UnsupportedPlatformError)
async def unsupported_platform(request: Request, exc: UnsupportedPlatformError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def _workspace_to_dict(workspace: Workspace) -> dict:
    return {
        "id": workspace.id,
        "display_path": workspace.display_path,
    }


def _conversation_to_dict(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "name": conversation.display_name,
        "created_at": conversation.created_at,
        "last_updated_at": conversation.last_updated_at,
    }


def _require_workspace(engine: ChatEngine, workspace_id: str) -> Workspace:
    workspace = engine.get_workspace(workspace_id)
    if workspace is None:
        raise HTTPException(status_code=404, detail=f"Workspace not found: {workspace_id}")
    return workspace


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/workspaces")
async def get_workspaces():
    """Return all workspaces with chat data."""
    engine = _get_engine()
    return [_workspace_to_dict(w) for w in engine.list_workspaces()]


@app.get("/api/workspaces/{workspace_id}/chats")
async def get_chats(workspace_id: str):
    """Return the conversations listed in a workspace's composer index."""
    engine = _get_engine()
    workspace = _require_workspace(engine, workspace_id)
    conversations = engine.list_conversations(workspace)
    conversations.sort(key=lambda c: c.last_updated_at or 0, reverse=True)
    return {
        "workspace": _workspace_to_dict(workspace),
        "chats": [_conversation_to_dict(c) for c in conversations],
    }


@app.get("/api/workspaces/{workspace_id}/chats/{conversation_id}")
async def get_chat_messages(workspace_id: str, conversation_id: str):
    """Return the normalized messages of one conversation."""
    engine = _get_engine()
    workspace = _require_workspace(engine, workspace_id)
    try:
        messages = engine.load_messages(workspace, conversation_id)
    except Exception as e:
        logger.error("Failed to load messages for %s: %s", conversation_id, e)
        raise HTTPException(status_code=500, detail="Failed to load messages")

    return {
        "conversation_id": conversation_id,
        "messages": [message_to_dict(m) for m in messages],
    }


@app.get("/api/export/{workspace_id}/{conversation_id}")
async def export_chat(
    workspace_id: str,
    conversation_id: str,
    format: str = Query("md", description="Export format: md, share or json"),
):
    """Export a conversation as a download."""
    engine = _get_engine()
    workspace = _require_workspace(engine, workspace_id)
    conversation = engine.get_conversation(workspace, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Chat not found")

    try:
        messages = engine.load_messages(workspace, conversation_id)
    except Exception as e:
        logger.error("Failed to load messages for export %s: %s", conversation_id, e)
        raise HTTPException(status_code=500, detail="Failed to load messages")

    if not messages:
        raise HTTPException(status_code=404, detail="No messages found in this chat")

    if format == "json":
        content = conversation_to_json(conversation, messages)
        media_type, filename = "application/json", safe_filename(conversation.display_name, ".json")
    elif format == "share":
        content = conversation_to_share_text(conversation.display_name, messages)
        media_type, filename = "text/markdown", safe_filename(conversation.display_name, "_shared.md")
    else:
        content = conversation_to_markdown(conversation, messages)
        media_type, filename = "text/markdown", safe_filename(conversation.display_name)

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/refresh")
async def refresh():
    """Forget tracked message state so every chat is re-baselined."""
    engine = _get_engine()
    engine.refresh()
    return {"status": "ok"}


@app.get("/api/settings")
async def get_settings():
    return {"check_interval": _get_engine().settings.check_interval_ms}


@app.post("/api/settings")
async def update_settings(
    check_interval: int = Query(..., ge=MIN_CHECK_INTERVAL_MS, description="Poll interval in ms"),
):
    """Save settings and apply the new poll interval."""
    engine = _get_engine()
    try:
        settings = engine.update_settings(check_interval)
    except OSError as e:
        logger.error("Failed to save settings: %s", e)
        raise HTTPException(status_code=500, detail="Failed to save settings")
    return {"check_interval": settings.check_interval_ms}


@app.get("/api/notifications")
async def get_notifications():
    """Return recent new-message notifications, oldest first."""
    return [
        {
            "conversation_id": e.conversation_id,
            "conversation_name": e.conversation_name,
            "workspace_id": e.workspace_id,
            "new_message_count": e.new_message_count,
        }
        for e in _get_engine().notifications
    ]
