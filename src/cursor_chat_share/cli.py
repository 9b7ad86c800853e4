"""CLI entry point for cursor-chat-share."""

import logging
import time
from pathlib import Path

import click
import uvicorn

from .config import UnsupportedPlatformError
from .engine import ChatEngine
from .export import conversation_to_markdown, conversation_to_share_text


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """View, share and watch Cursor composer chats."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web interface (and the new-message poller)."""
    click.echo(f"Starting cursor-chat-share on http://{host}:{port}")
    uvicorn.run("cursor_chat_share.server:app", host=host, port=port, reload=False)


@main.command()
@click.option("--project", "projects", multiple=True, help="Only watch workspaces of this folder name.")
@click.option("--interval", type=click.IntRange(min=1000), default=None, help="Poll interval in ms.")
def watch(projects: tuple[str, ...], interval: int | None):
    """Poll for new assistant messages until interrupted."""
    engine = ChatEngine(
        project_names=projects,
        notify=lambda event: click.echo(f'New messages in "{event.conversation_name}"'),
    )
    if interval is not None:
        engine.poller.set_interval(interval)

    try:
        engine.poller.poll_once()  # baseline
    except UnsupportedPlatformError as e:
        raise click.ClickException(str(e))

    engine.start()
    click.echo(f"Watching for new messages every {engine.poller.interval_ms}ms (Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        engine.stop()


@main.command()
@click.option("--project", "projects", multiple=True, help="Only list workspaces of this folder name.")
def chats(projects: tuple[str, ...]):
    """List composer chats per workspace."""
    engine = ChatEngine(project_names=projects)
    try:
        workspaces = engine.watched_workspaces()
    except UnsupportedPlatformError as e:
        raise click.ClickException(str(e))

    if not workspaces:
        click.echo("No Cursor chat data found.")
        return

    for workspace in workspaces:
        click.echo(f"{workspace.display_path}  [{workspace.id}]")
        for conversation in engine.list_conversations(workspace):
            click.echo(f"  {conversation.id}  {conversation.display_name}")


@main.command()
@click.argument("workspace_id")
@click.argument("conversation_id")
@click.option("--format", "fmt", type=click.Choice(["share", "md"]), default="share")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None)
def share(workspace_id: str, conversation_id: str, fmt: str, output: Path | None):
    """Export one chat to stdout or a file."""
    engine = ChatEngine()
    try:
        workspace = engine.get_workspace(workspace_id)
    except UnsupportedPlatformError as e:
        raise click.ClickException(str(e))
    if workspace is None:
        raise click.ClickException(f"Workspace not found: {workspace_id}")

    conversation = engine.get_conversation(workspace, conversation_id)
    if conversation is None:
        raise click.ClickException(f"Chat not found: {conversation_id}")

    messages = engine.load_messages(workspace, conversation_id)
    if not messages:
        raise click.ClickException("No messages found in this chat.")

    if fmt == "md":
        content = conversation_to_markdown(conversation, messages)
    else:
        content = conversation_to_share_text(conversation.display_name, messages)

    if output is None:
        click.echo(content)
    else:
        output.write_text(content, encoding="utf-8")
        click.echo(f"Chat saved to {output}")
