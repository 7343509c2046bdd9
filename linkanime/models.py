"""Data models for the linkanime package."""
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

MediaType = Literal["series", "movie"]
MEDIA_TYPES: tuple[str, ...] = ("series", "movie")

FileStatus = Literal["linked", "skipped", "failed"]


@dataclass
class ParseResult:
    """Clean show/movie name and optional season parsed from a release name."""
    name: str
    season: int | None = None


@dataclass
class LinkRequest:
    """A request to link a download into the library."""
    source: str  # folder/file name inside the download directory
    media_type: MediaType
    name: str
    season: int = 1  # series only
    dry_run: bool = False


@dataclass
class LinkResult:
    """Outcome of a link, undo or unlink operation.

    For undo and unlink ``linked_count`` holds the number of files removed.
    """
    linked_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    total_bytes: int = 0
    dest_dir: str = ""
    files: list[str] = field(default_factory=list)
    history_error: str | None = None

    def merge(self, other: "LinkResult") -> None:
        """Add the counters and files of *other* into this result."""
        self.linked_count += other.linked_count
        self.skipped_count += other.skipped_count
        self.failed_count += other.failed_count
        self.total_bytes += other.total_bytes
        self.files.extend(other.files)
        if other.history_error and not self.history_error:
            self.history_error = other.history_error

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HistoryEntry:
    """One persisted link operation."""
    id: int
    timestamp: str
    media_type: MediaType
    show_name: str
    season: int | None
    file_count: int
    total_bytes: int
    dest_dir: str
    source_label: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LinkedFileRecord:
    """A single hardlink created under a history entry."""
    id: int
    history_id: int
    dest_path: str
    source_path: str


# ---------------------------------------------------------------------------
# Progress messages
# ---------------------------------------------------------------------------

def progress_message(file: str, status: FileStatus, current: int, total: int) -> dict[str, Any]:
    """Build a per-file ``progress`` message."""
    return {
        "type": "progress",
        "file": file,
        "status": status,
        "current": current,
        "total": total,
    }


def complete_message(result: LinkResult) -> dict[str, Any]:
    """Build the final ``complete`` message for an operation."""
    return {"type": "complete", "result": result.to_dict()}
