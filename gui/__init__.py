"""linkanime Qt integration."""
from .worker import LinkWorker, UndoWorker, UnlinkWorker, SignalSink

__all__ = [
    "LinkWorker",
    "UndoWorker",
    "UnlinkWorker",
    "SignalSink",
]
