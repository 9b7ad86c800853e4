"""Periodic polling for new chat messages.

``Poller.poll_once()`` runs one complete, synchronous cycle and can be
called directly (tests do). ``start()`` hands it to an
``IntervalScheduler`` that runs cycles on a single background thread, so
two cycles never overlap.
"""

import logging
import threading
from typing import Callable, Optional

from .assembler import ConversationAssembler
from .config import DEFAULT_CHECK_INTERVAL_MS, clamp_interval
from .core import NewMessageEvent, Workspace
from .tracker import ChangeTracker, is_tracked
from .workspaces import WorkspaceLocator

logger = logging.getLogger(__name__)

Notify = Callable[[NewMessageEvent], None]


class IntervalScheduler:
    """Run a task every ``interval`` seconds on one daemon thread.

    The first run happens one interval after ``start()``. A run that
    raises is logged; the next tick is the retry.
    """

    def __init__(self, interval: float, task: Callable[[], object], name: str = "scheduler"):
        self.interval = interval
        self.task = task
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._stop.is_set():
            # A cancelled worker may still be finishing its last run.
            self.stop()
        if self.is_running:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name=self.name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Cancel the pending tick without waiting for an in-flight run."""
        self._stop.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel the pending tick and wait for an in-flight run to finish."""
        self.cancel()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            try:
                self.task()
            except Exception:
                logger.exception("%s: scheduled run failed", self.name)


class Poller:
    """Checks tracked conversations of the relevant workspaces for growth.

    ``workspaces`` returns the workspaces to poll on each cycle; it
    defaults to every workspace the locator can find. ``notify`` receives
    each NewMessageEvent.
    """

    def __init__(
        self,
        locator: WorkspaceLocator,
        assembler: ConversationAssembler,
        tracker: ChangeTracker,
        notify: Optional[Notify] = None,
        interval_ms: int = DEFAULT_CHECK_INTERVAL_MS,
        workspaces: Optional[Callable[[], list[Workspace]]] = None,
    ):
        self.locator = locator
        self.assembler = assembler
        self.tracker = tracker
        self.notify = notify
        self.workspaces = workspaces or locator.list_workspaces
        self.interval_ms = clamp_interval(interval_ms)
        self._scheduler = IntervalScheduler(self.interval_ms / 1000, self.poll_once, name="poller")

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    def start(self) -> None:
        logger.info("Polling for new messages every %dms", self.interval_ms)
        self._scheduler.start()

    def stop(self) -> None:
        self._scheduler.stop()

    def set_interval(self, interval_ms: int) -> None:
        """Change the interval, restarting the schedule if it is running."""
        self.interval_ms = clamp_interval(interval_ms)
        was_running = self.is_running
        self._scheduler.stop()
        self._scheduler = IntervalScheduler(self.interval_ms / 1000, self.poll_once, name="poller")
        if was_running:
            self.start()

    def poll_once(self) -> list[NewMessageEvent]:
        """Run one cycle across all workspaces and return the events raised."""
        events = []
        for workspace in self.workspaces():
            events.extend(self.poll_workspace(workspace))

        for event in events:
            logger.info("New messages in \"%s\"", event.conversation_name)
            if self.notify is not None:
                self.notify(event)
        return events

    def poll_workspace(self, workspace: Workspace) -> list[NewMessageEvent]:
        index = self.locator.read_composer_index(workspace)
        if index is None:
            logger.debug("No composer index in workspace %s", workspace.id)
            return []

        tracked = [c for c in index.conversations if is_tracked(c, index.selected_ids)]
        if not tracked:
            return []

        bodies = self.assembler.assemble_many(workspace.storage_dir, workspace.id, tracked)

        events = []
        for conversation in tracked:
            conversation.messages = bodies.get(conversation.id, [])
            event = self.tracker.observe_conversation(conversation, workspace_id=workspace.id)
            if event is not None:
                events.append(event)
        return events
