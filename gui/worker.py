"""Background workers that run engine operations for a Qt UI.

Each worker is a ``QObject`` meant to be moved to a ``QThread``; its
``run()`` performs one operation and reports through signals.  Signals
emitted from the worker thread are queued to the receiver, so progress
delivery never blocks linking.
"""
from typing import Any

from PySide6.QtCore import QObject, Signal

from linkanime.config import LibraryPaths
from linkanime.linker import LinkEngine
from linkanime.models import LinkRequest


class SignalSink:
    """Progress sink that forwards engine messages to a worker's signals."""

    def __init__(self, worker: "LinkWorker"):
        self._worker = worker

    def send(self, message: dict[str, Any]) -> None:
        if message.get("type") == "progress":
            self._worker.progress.emit(
                message["file"], message["status"],
                message["current"], message["total"],
            )
            self._worker.log.emit(f"[{message['status'].upper()}] {message['file']}")


class LinkWorker(QObject):
    """Worker for linking (or previewing) one download."""

    # Signals
    started = Signal()
    progress = Signal(str, str, int, int)  # file, status, current, total
    log = Signal(str)
    finished = Signal(object)  # LinkResult
    error = Signal(str)

    def __init__(self, engine: LinkEngine, request: LinkRequest, paths: LibraryPaths):
        super().__init__()
        self.engine = engine
        self.request = request
        self.paths = paths

    def run(self):
        """Execute the link operation."""
        try:
            self.started.emit()
            mode = "Previewing" if self.request.dry_run else "Linking"
            self.log.emit(f"{mode}: {self.request.source}")

            result = self.engine.link(self.request, self.paths, SignalSink(self))

            if result.history_error:
                self.log.emit(f"[WARN] History not saved: {result.history_error}")
            self.finished.emit(result)

        except Exception as e:
            self.error.emit(str(e))


class UndoWorker(QObject):
    """Worker for undoing the most recent link operation."""

    started = Signal()
    log = Signal(str)
    finished = Signal(object, object)  # LinkResult, HistoryEntry
    error = Signal(str)

    def __init__(self, engine: LinkEngine, paths: LibraryPaths | None = None,
                 dry_run: bool = False):
        super().__init__()
        self.engine = engine
        self.paths = paths
        self.dry_run = dry_run

    def run(self):
        try:
            self.started.emit()
            result, entry = self.engine.undo(self.paths, dry_run=self.dry_run)
            self.log.emit(
                f"Undo {entry.show_name}: {result.linked_count} removed, "
                f"{result.skipped_count} missing, {result.failed_count} failed"
            )
            self.finished.emit(result, entry)
        except Exception as e:
            self.error.emit(str(e))


class UnlinkWorker(QObject):
    """Worker for removing every video file under a library folder."""

    started = Signal()
    log = Signal(str)
    finished = Signal(object)  # LinkResult
    error = Signal(str)

    def __init__(self, engine: LinkEngine, target_dir: str,
                 paths: LibraryPaths | None = None, dry_run: bool = False):
        super().__init__()
        self.engine = engine
        self.target_dir = target_dir
        self.paths = paths
        self.dry_run = dry_run

    def run(self):
        try:
            self.started.emit()
            result = self.engine.unlink(self.target_dir, self.paths, dry_run=self.dry_run)
            self.log.emit(f"Unlink {self.target_dir}: {result.linked_count} removed")
            self.finished.emit(result)
        except Exception as e:
            self.error.emit(str(e))
