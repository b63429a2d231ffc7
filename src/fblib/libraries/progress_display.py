"""Rich-based live progress display for library installs.

Renders one line per library, transitioning through phases as the executor
reports events:

    Downloading [=========>     ] 62% -> Installing (spinner) -> Installed (checkmark) 1.4s

Libraries that were already up to date show as "Up to date". The executor
processes one library at a time and reports through ProgressCallback; the
lock only guards state shared with Live's background refresh thread.
"""

import threading
import time
from enum import Enum
from typing import Any

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .models import DownloadProgress, InstallEvent, TaskProgress

# Braille spinner frames for the INSTALLING phase animation
_SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


class DisplayPhase(Enum):
    """Phase of a single library line."""

    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    REPLACING = "replacing"
    DONE = "done"
    UP_TO_DATE = "up_to_date"
    REMOVED = "removed"
    FAILED = "failed"


_EVENT_PHASES = {
    InstallEvent.DOWNLOAD_STARTED: DisplayPhase.DOWNLOADING,
    InstallEvent.INSTALL_STARTED: DisplayPhase.INSTALLING,
    InstallEvent.REPLACED: DisplayPhase.REPLACING,
    InstallEvent.INSTALLED: DisplayPhase.DONE,
    InstallEvent.SKIPPED: DisplayPhase.UP_TO_DATE,
    InstallEvent.UNINSTALLED: DisplayPhase.REMOVED,
}

_TERMINAL_PHASES = (DisplayPhase.DONE, DisplayPhase.UP_TO_DATE, DisplayPhase.REMOVED, DisplayPhase.FAILED)


class _LibraryDisplayState:
    """Internal state for a single library's display line."""

    __slots__ = ("library", "phase", "downloaded", "total", "detail", "reason", "elapsed", "start_time")

    def __init__(self, library: str) -> None:
        self.library = library
        self.phase = DisplayPhase.DOWNLOADING
        self.downloaded: int = 0
        self.total: int = 0
        self.detail: str = ""
        self.reason: str = ""
        self.elapsed: float = 0.0
        self.start_time = time.monotonic()


class LibraryProgressDisplay:
    """Live install progress table using Rich.

    Args:
        console: Rich Console instance for rendering. If None, creates a new one.
        title: Header line (e.g. "Installing Servo@1.2.1").
        refresh_per_second: Display refresh rate.
    """

    def __init__(self, console: Console | None = None, title: str = "Installing libraries", refresh_per_second: int = 10) -> None:
        self._console = console if console is not None else Console()
        self._title = title
        self._refresh_per_second = refresh_per_second
        self._states: dict[str, _LibraryDisplayState] = {}
        self._order: list[str] = []
        self._lock = threading.Lock()
        self._live: Live | None = None

    def on_download_progress(self, progress: DownloadProgress) -> None:
        with self._lock:
            state = self._state_for(progress.library)
            if state.phase in _TERMINAL_PHASES:
                return
            state.phase = DisplayPhase.DOWNLOADING
            state.downloaded = progress.downloaded
            state.total = progress.total

    def on_task_progress(self, progress: TaskProgress) -> None:
        if progress.library is None:
            return
        with self._lock:
            state = self._state_for(progress.library)
            state.phase = _EVENT_PHASES.get(progress.event, state.phase)
            state.detail = progress.message
            if progress.reason:
                state.reason = progress.reason
            state.elapsed = time.monotonic() - state.start_time

    def mark_failed(self, library: str, detail: str) -> None:
        """Show a library as failed (the executor raises rather than reporting failures)."""
        with self._lock:
            state = self._state_for(library)
            state.phase = DisplayPhase.FAILED
            state.detail = detail
            state.elapsed = time.monotonic() - state.start_time

    def _state_for(self, library: str) -> _LibraryDisplayState:
        state = self._states.get(library)
        if state is None:
            state = _LibraryDisplayState(library)
            self._states[library] = state
            self._order.append(library)
        return state

    def start(self) -> None:
        """Start the live display."""
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=False,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display."""
        if self._live is not None:
            # Final render with latest state
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None

    def update(self) -> None:
        """Force a display refresh."""
        if self._live is not None:
            self._live.update(self._render_display())

    def _render_display(self) -> Group:
        header = Text(f"\n{self._title}...\n", style="bold")
        return Group(header, self._render_table(), self._render_footer())

    def _render_table(self) -> Table:
        table = Table(show_header=False, show_edge=False, show_lines=False, box=None, padding=(0, 1), expand=False)
        table.add_column("Library", style="bold", no_wrap=True, min_width=28)
        table.add_column("Phase", no_wrap=True, min_width=12)
        table.add_column("Status", no_wrap=True, min_width=40)

        with self._lock:
            for library in self._order:
                state = self._states[library]
                table.add_row(self._format_name(state), self._format_phase(state), self._format_status(state))
        return table

    def _render_footer(self) -> Text:
        with self._lock:
            total = len(self._states)
            installed = sum(1 for s in self._states.values() if s.phase == DisplayPhase.DONE)
            skipped = sum(1 for s in self._states.values() if s.phase == DisplayPhase.UP_TO_DATE)
            failed = sum(1 for s in self._states.values() if s.phase == DisplayPhase.FAILED)

        parts = [f"{total} libraries"]
        if installed:
            parts.append(f"{installed} installed")
        if skipped:
            parts.append(f"{skipped} up to date")
        if failed:
            parts.append(f"{failed} failed")
        return Text(f"\n  {', '.join(parts)}", style="dim")

    def _format_name(self, state: _LibraryDisplayState) -> Text:
        if state.phase == DisplayPhase.FAILED:
            return Text(state.library, style="red")
        if state.phase in _TERMINAL_PHASES:
            return Text(state.library, style="green")
        return Text(state.library, style="bold cyan")

    def _format_phase(self, state: _LibraryDisplayState) -> Text:
        phase_labels = {
            DisplayPhase.DOWNLOADING: ("Downloading", "blue"),
            DisplayPhase.INSTALLING: ("Installing", "magenta"),
            DisplayPhase.REPLACING: ("Replacing", "yellow"),
            DisplayPhase.DONE: ("Installed", "green"),
            DisplayPhase.UP_TO_DATE: ("Up to date", "green"),
            DisplayPhase.REMOVED: ("Removed", "green"),
            DisplayPhase.FAILED: ("Failed", "red bold"),
        }
        label, style = phase_labels[state.phase]
        return Text(label, style=style)

    def _format_status(self, state: _LibraryDisplayState) -> Text:
        if state.phase == DisplayPhase.DOWNLOADING:
            return self._format_progress_bar(state)
        if state.phase in (DisplayPhase.INSTALLING, DisplayPhase.REPLACING):
            spinner = _SPINNER_FRAMES[int(time.monotonic() * 8) % len(_SPINNER_FRAMES)]
            return Text(f"{spinner} {state.detail or 'Processing...'}", style="magenta")
        if state.phase == DisplayPhase.DONE:
            reason = f" ({state.reason})" if state.reason else ""
            return Text(f"✓ {state.elapsed:.1f}s{reason}", style="green")
        if state.phase == DisplayPhase.FAILED:
            return Text(f"✗ {state.detail or 'Error'}", style="red")
        return Text(f"✓ {state.detail}", style="green")

    def _format_progress_bar(self, state: _LibraryDisplayState) -> Text:
        bar_width = 20
        pct = min(state.downloaded / state.total, 1.0) if state.total > 0 else 0.0
        filled = int(bar_width * pct)
        if 0 < filled < bar_width:
            bar = "=" * (filled - 1) + ">" + " " * (bar_width - filled)
        elif filled == bar_width:
            bar = "=" * bar_width
        else:
            bar = " " * bar_width
        return Text(f"[{bar}] {pct * 100:>3.0f}%", style="blue")

    def get_snapshot(self) -> list[dict[str, Any]]:
        """Get a snapshot of current display states for testing."""
        with self._lock:
            return [
                {
                    "library": state.library,
                    "phase": state.phase,
                    "downloaded": state.downloaded,
                    "total": state.total,
                    "detail": state.detail,
                    "reason": state.reason,
                }
                for state in (self._states[library] for library in self._order)
            ]

    def __enter__(self) -> "LibraryProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
