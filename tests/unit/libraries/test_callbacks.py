"""Unit tests for progress callbacks."""

import queue

from fblib.libraries.callbacks import NullCallback, ProgressCallback, QueueCallback
from fblib.libraries.models import DownloadProgress, InstallEvent, TaskProgress


class TestProtocol:
    """Tests that the shipped callbacks satisfy ProgressCallback."""

    def test_null_callback(self) -> None:
        callback = NullCallback()
        assert isinstance(callback, ProgressCallback)
        callback.on_download_progress(DownloadProgress("Servo@1.0.0", "https://x", 1, 2))
        callback.on_task_progress(TaskProgress("Servo@1.0.0", InstallEvent.INSTALLED, "done"))

    def test_queue_callback(self) -> None:
        assert isinstance(QueueCallback(), ProgressCallback)


class TestQueueCallback:
    """Tests for QueueCallback."""

    def test_drain_preserves_order(self) -> None:
        callback = QueueCallback()
        download = DownloadProgress("Servo@1.0.0", "https://x", 10, 10, completed=True)
        task = TaskProgress("Servo@1.0.0", InstallEvent.INSTALLED, "Installed Servo@1.0.0", completed=True)
        callback.on_download_progress(download)
        callback.on_task_progress(task)
        assert callback.drain() == [download, task]
        assert callback.drain() == []

    def test_uses_given_queue(self) -> None:
        events: queue.Queue = queue.Queue()
        callback = QueueCallback(events)
        callback.on_task_progress(TaskProgress(None, InstallEvent.SKIPPED, "nothing"))
        assert events.qsize() == 1
