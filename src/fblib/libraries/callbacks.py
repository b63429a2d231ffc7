"""Progress callback protocol for library installation.

Two independently driven channels are reported:
- download progress: bytes transferred per archive
- task progress: lifecycle events per library (download started, installed, ...)

Events for one library are always delivered in order: download events before
install events before the terminal event.
"""

import queue
from typing import Optional, Protocol, Union, runtime_checkable

from .models import DownloadProgress, TaskProgress


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for receiving progress updates from the installation engine."""

    def on_download_progress(self, progress: DownloadProgress) -> None:
        """Called as archive bytes arrive.

        Args:
            progress: Current transfer state for one archive.
        """
        ...

    def on_task_progress(self, progress: TaskProgress) -> None:
        """Called on every lifecycle event of a library.

        Args:
            progress: Event, message and completion flag.
        """
        ...


class NullCallback:
    """No-op callback implementation for testing and non-interactive use."""

    def on_download_progress(self, progress: DownloadProgress) -> None:
        """Discard download update."""
        pass

    def on_task_progress(self, progress: TaskProgress) -> None:
        """Discard task update."""
        pass


class QueueCallback:
    """Forwards every event into a queue drained by a remote caller.

    A service handling requests from another process hands this to the
    engine and streams the queue contents back. ``put_nowait`` is used so a
    slow consumer never blocks the installation.
    """

    def __init__(self, events: Optional["queue.Queue[Union[DownloadProgress, TaskProgress]]"] = None) -> None:
        self.events: "queue.Queue[Union[DownloadProgress, TaskProgress]]" = events if events is not None else queue.Queue()

    def on_download_progress(self, progress: DownloadProgress) -> None:
        self.events.put_nowait(progress)

    def on_task_progress(self, progress: TaskProgress) -> None:
        self.events.put_nowait(progress)

    def drain(self) -> list[Union[DownloadProgress, TaskProgress]]:
        """Return all queued events without blocking."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained
