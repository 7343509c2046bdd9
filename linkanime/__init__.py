"""
linkanime - Anime Library Linker

Hardlinks downloaded releases into a Season-structured media library,
with a persistent history so any operation can be undone.
"""
from .models import (
    ParseResult,
    LinkRequest,
    LinkResult,
    HistoryEntry,
    LinkedFileRecord,
)
from .parser import parse_release_name
from .classifier import (
    VideoClassifier,
    is_video,
    season_number_of,
    find_season_dirs,
)
from .history import LinkHistory, HistoryError, NoHistoryError
from .linker import (
    LinkEngine,
    LinkError,
    InvalidRequestError,
    SourceNotFoundError,
    DestinationCreateError,
    SeasonLinkError,
)
from .progress import QueueSink, CallbackSink
from .config import Config, LibraryPaths, load_config, resolve_paths

__version__ = "0.3.0"
__all__ = [
    "ParseResult",
    "LinkRequest",
    "LinkResult",
    "HistoryEntry",
    "LinkedFileRecord",
    "parse_release_name",
    "VideoClassifier",
    "is_video",
    "season_number_of",
    "find_season_dirs",
    "LinkHistory",
    "HistoryError",
    "NoHistoryError",
    "LinkEngine",
    "LinkError",
    "InvalidRequestError",
    "SourceNotFoundError",
    "DestinationCreateError",
    "SeasonLinkError",
    "QueueSink",
    "CallbackSink",
    "Config",
    "LibraryPaths",
    "load_config",
    "resolve_paths",
]
