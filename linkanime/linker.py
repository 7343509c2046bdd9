"""Link engine: hardlinks downloads into the library and reverses them.

Layout produced in the library::

    <media_dir>/<name>/Season <n>/<episode file>     (series)
    <movies_dir>/<name>/<movie file>                 (movies)

Source files are never moved or deleted.  Real runs record what they
linked in a ``LinkHistory`` so that ``undo`` can remove exactly those
links later, even after a restart.  Dry runs make the same decisions
without touching the filesystem or the ledger.

Per-file problems are counted in the result (``failed_count``,
``skipped_count``); only structural problems (missing source, unusable
destination) raise.
"""
from __future__ import annotations

import logging
import os
import stat
import threading
from pathlib import Path
from typing import Callable, Iterable

from .classifier import VideoClassifier, find_season_dirs
from .config import LibraryPaths
from .history import DEFAULT_HISTORY_LIMIT, HistoryError, LinkHistory, NoHistoryError
from .models import (
    MEDIA_TYPES,
    FileStatus,
    HistoryEntry,
    LinkRequest,
    LinkResult,
    complete_message,
    progress_message,
)
from .progress import ProgressSink, deliver

log = logging.getLogger(__name__)

SameFile = Callable[[str | Path, str | Path], bool]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LinkError(Exception):
    """Raised when a link operation cannot run at all."""
    pass


class InvalidRequestError(LinkError, ValueError):
    """Raised for malformed link requests."""
    pass


class SourceNotFoundError(LinkError):
    """None of the exact, dotted or spaced source names exist."""

    def __init__(self, source: str, download_dir: str | Path):
        self.source = source
        self.download_dir = str(download_dir)
        super().__init__(f"source not found: {source} (searched in {download_dir})")


class DestinationCreateError(LinkError):
    """The destination directory could not be created."""
    pass


class SeasonLinkError(LinkError):
    """A season of a multi-season source failed.

    Seasons linked before the failure stay linked; ``partial`` holds
    their combined result.
    """

    def __init__(self, season: int, partial: LinkResult, cause: Exception):
        self.season = season
        self.partial = partial
        super().__init__(f"season {season}: {cause}")


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------

def same_file(path_a: str | Path, path_b: str | Path) -> bool:
    """True when both paths name the same file (same device and inode)."""
    try:
        return os.path.samefile(path_a, path_b)
    except OSError:
        return False


def resolve_source(source: str, download_dir: str | Path) -> Path:
    """
    Find *source* inside *download_dir*.

    Release names get retyped with dots and spaces swapped, so after the
    exact name the dotted (space -> dot) and spaced (dot -> space) forms
    are tried.

    Raises:
        InvalidRequestError: if *source* points outside *download_dir*
        SourceNotFoundError: if none of the forms exist
    """
    base = Path(download_dir)
    root = {_norm(base)}
    if not _within(_norm(base / source), root):
        raise InvalidRequestError(f"source must be inside {download_dir}: {source}")
    for candidate in (source, source.replace(" ", "."), source.replace(".", " ")):
        path = base / candidate
        if path.exists() and _within(_norm(path), root):
            if candidate != source:
                log.debug("Resolved source %r as %r", source, candidate)
            return path
    raise SourceNotFoundError(source, download_dir)


def destination_dir(request: LinkRequest, paths: LibraryPaths) -> Path:
    if request.media_type == "movie":
        return Path(paths.movies_dir) / request.name
    return Path(paths.media_dir) / request.name / f"Season {request.season}"


def link_file(
    src: str | Path,
    dest: str | Path,
    dry_run: bool,
    result: LinkResult,
    same_file: SameFile = same_file,
) -> FileStatus:
    """
    Hardlink one file and count the outcome in *result*.

    An existing destination is always skipped, never overwritten, whether
    or not it is already a link to *src*.

    Returns:
        "linked", "skipped" or "failed"
    """
    try:
        size = os.stat(src).st_size
    except OSError as e:
        log.warning("Cannot stat %s: %s", src, e)
        result.failed_count += 1
        return "failed"

    if os.path.lexists(dest):
        if same_file(src, dest):
            log.debug("Already linked: %s", dest)
        else:
            log.debug("Destination exists (different file): %s", dest)
        result.skipped_count += 1
        return "skipped"

    if dry_run:
        result.linked_count += 1
        result.total_bytes += size
        return "linked"

    # The destination may appear between the check above and this call;
    # os.link then fails instead of replacing it.
    try:
        os.link(src, dest)
    except OSError as e:
        log.warning("Failed to link %s -> %s: %s", src, dest, e)
        result.failed_count += 1
        return "failed"

    result.linked_count += 1
    result.total_bytes += size
    return "linked"


def _norm(path: str | Path) -> str:
    return os.path.normpath(os.path.abspath(path))


def prune_empty_dirs(directory: str | Path, keep: Iterable[str | Path] = ()) -> bool:
    """
    Remove *directory* if, after pruning its subdirectories, it is empty.

    Directories listed in *keep* are pruned into but never removed.

    Returns:
        True if *directory* itself was removed
    """
    keep_set = {_norm(k) for k in keep}
    return _prune(_norm(directory), keep_set)


def _prune(directory: str, keep: set[str]) -> bool:
    try:
        with os.scandir(directory) as entries:
            subdirs = [e.path for e in entries if e.is_dir(follow_symlinks=False)]
    except OSError:
        return False

    for subdir in subdirs:
        _prune(subdir, keep)

    if directory in keep:
        return False
    try:
        os.rmdir(directory)
    except OSError:
        return False
    log.debug("Removed empty directory %s", directory)
    return True


def _within(path: str, roots: set[str]) -> bool:
    for root in roots:
        try:
            if path != root and os.path.commonpath([path, root]) == root:
                return True
        except ValueError:
            continue
    return False


def prune_upward(directory: str | Path, roots: Iterable[str | Path] = ()) -> None:
    """Prune *directory*, then each now-empty ancestor below one of *roots*.

    With no roots only *directory* and its subtree are considered.
    """
    root_set = {_norm(r) for r in roots}
    current = _norm(directory)
    removed = _prune(current, root_set)
    while removed:
        parent = os.path.dirname(current)
        if parent == current or parent in root_set or not _within(parent, root_set):
            return
        try:
            os.rmdir(parent)
        except OSError:
            return
        log.debug("Removed empty directory %s", parent)
        current = parent


def validate_request(request: LinkRequest) -> None:
    """
    Reject requests the engine cannot act on.

    Raises:
        InvalidRequestError: on a blank or absolute source, a blank name,
            an unknown media type, a name that is not a single path
            component, or a negative season
    """
    if not request.source or not request.source.strip():
        raise InvalidRequestError("source is required")
    if os.path.isabs(request.source):
        raise InvalidRequestError(f"source must be relative to the download dir: {request.source}")
    if not request.name or not request.name.strip():
        raise InvalidRequestError("name is required")
    if request.media_type not in MEDIA_TYPES:
        raise InvalidRequestError("type must be 'series' or 'movie'")
    if request.name in (".", "..") or "/" in request.name or os.sep in request.name:
        raise InvalidRequestError(f"invalid name: {request.name!r}")
    if request.media_type == "series" and request.season < 0:
        raise InvalidRequestError(f"invalid season: {request.season}")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class LinkEngine:
    """Runs link, undo and unlink operations against one ledger.

    Usage::

        engine = LinkEngine(LinkHistory(db_path), VideoClassifier(["mkv"]))
        result = engine.link(request, paths, sink)
        removed, entry = engine.undo(paths)

    Real operations are serialized by an engine-wide lock; dry runs never
    take it.  Every operation runs to completion on the calling thread.
    """

    def __init__(
        self,
        history: LinkHistory,
        classifier: VideoClassifier | None = None,
        same_file: SameFile = same_file,
    ):
        self.history = history
        self.classifier = classifier or VideoClassifier()
        self._same_file = same_file
        self._lock = threading.RLock()

    # -- link -------------------------------------------------------

    def link(
        self,
        request: LinkRequest,
        paths: LibraryPaths,
        sink: ProgressSink | None = None,
    ) -> LinkResult:
        """
        Link *request.source* into the library.

        Args:
            request: What to link and where
            paths: Resolved download/media/movies roots
            sink: Optional receiver for progress and completion messages

        Returns:
            A fresh LinkResult. Check ``failed_count``/``skipped_count``:
            partial failure is reported there, not raised.

        Raises:
            InvalidRequestError, SourceNotFoundError, DestinationCreateError,
            SeasonLinkError, LinkError
        """
        validate_request(request)
        if request.dry_run:
            return self._link(request, paths, sink)
        with self._lock:
            return self._link(request, paths, sink)

    def preview(self, request: LinkRequest, paths: LibraryPaths) -> LinkResult:
        """Dry-run *request* without reporting progress."""
        preview_request = LinkRequest(
            source=request.source,
            media_type=request.media_type,
            name=request.name,
            season=request.season,
            dry_run=True,
        )
        return self.link(preview_request, paths)

    def _link(
        self,
        request: LinkRequest,
        paths: LibraryPaths,
        sink: ProgressSink | None,
    ) -> LinkResult:
        source_path = resolve_source(request.source, paths.download_dir)
        dest_dir = destination_dir(request, paths)
        log.info(
            "%s %s -> %s",
            "Previewing" if request.dry_run else "Linking", source_path, dest_dir,
        )

        result = None
        if request.media_type == "series" and _is_dir(source_path):
            seasons = find_season_dirs(source_path)
            if seasons:
                result = self._link_seasons(source_path, seasons, request, paths, sink)

        if result is None:
            result = self._link_single(
                source_path,
                dest_dir,
                request,
                season=request.season if request.media_type == "series" else None,
                source_label=source_path.name,
                sink=sink,
            )

        deliver(sink, complete_message(result))
        return result

    def _link_seasons(
        self,
        source_path: Path,
        seasons: dict[int, Path],
        request: LinkRequest,
        paths: LibraryPaths,
        sink: ProgressSink | None,
    ) -> LinkResult:
        """Link every season directory of a multi-season release."""
        combined = LinkResult(dest_dir=str(Path(paths.media_dir) / request.name))
        log.info("Found %d season directories in %s", len(seasons), source_path)

        for number in sorted(seasons):
            season_dir = seasons[number]
            dest_dir = Path(paths.media_dir) / request.name / f"Season {number}"
            try:
                season_result = self._link_single(
                    season_dir,
                    dest_dir,
                    request,
                    season=number,
                    source_label=f"{source_path.name}/{season_dir.name}",
                    sink=sink,
                )
            except LinkError as e:
                raise SeasonLinkError(number, combined, e) from e
            combined.merge(season_result)

        return combined

    def _link_single(
        self,
        source_path: Path,
        dest_dir: Path,
        request: LinkRequest,
        season: int | None,
        source_label: str,
        sink: ProgressSink | None,
    ) -> LinkResult:
        """Link one directory (flat) or one file into *dest_dir*."""
        result = LinkResult(dest_dir=str(dest_dir))

        try:
            mode = os.stat(source_path).st_mode
        except OSError as e:
            raise LinkError(f"stat source {source_path}: {e}") from e

        candidates = self._candidates(source_path, stat.S_ISDIR(mode))

        if candidates and not request.dry_run:
            try:
                dest_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DestinationCreateError(f"create dest dir {dest_dir}: {e}") from e

        recorded: list[tuple[str, str]] = []
        total = len(candidates)
        for index, src in enumerate(candidates, 1):
            dest = dest_dir / src.name
            status = link_file(src, dest, request.dry_run, result, self._same_file)
            if status == "linked":
                result.files.append(str(dest))
                recorded.append((str(dest), str(src)))
            deliver(sink, progress_message(src.name, status, index, total))

        if not request.dry_run and recorded:
            try:
                self.history.record_operation(
                    media_type=request.media_type,
                    show_name=request.name,
                    season=season,
                    total_bytes=result.total_bytes,
                    dest_dir=str(dest_dir),
                    source_label=source_label,
                    files=recorded,
                )
            except HistoryError as e:
                # The links exist; only the undo record is missing.
                log.warning("Failed to write history for %s: %s", dest_dir, e)
                result.history_error = str(e)

        log.info(
            "%s: %d linked, %d skipped, %d failed",
            dest_dir, result.linked_count, result.skipped_count, result.failed_count,
        )
        return result

    def _candidates(self, source_path: Path, is_dir: bool) -> list[Path]:
        """Video files to link, sorted by name."""
        if not is_dir:
            return [source_path] if self.classifier.is_video(source_path.name) else []
        try:
            with os.scandir(source_path) as entries:
                files = [
                    Path(e.path) for e in entries
                    if e.is_file() and self.classifier.is_video(e.name)
                ]
        except OSError as e:
            raise LinkError(f"read source dir {source_path}: {e}") from e
        return sorted(files, key=lambda p: p.name)

    # -- history / undo ---------------------------------------------

    def get_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[HistoryEntry]:
        """Return recent history entries, newest first."""
        return self.history.list_history(limit)

    def undo(
        self,
        paths: LibraryPaths | None = None,
        dry_run: bool = False,
    ) -> tuple[LinkResult, HistoryEntry]:
        """
        Remove the links recorded by the most recent history entry.

        In the result ``linked_count`` is the number of files removed,
        ``skipped_count`` the number already gone and ``failed_count`` the
        number that could not be removed.  Emptied directories are pruned
        upward, stopping at the library roots in *paths*.  With *dry_run*
        nothing is removed and the entry is kept.

        Raises:
            NoHistoryError: if the ledger is empty
        """
        if dry_run:
            return self._undo(paths, dry_run=True)
        with self._lock:
            return self._undo(paths, dry_run=False)

    def _undo(
        self,
        paths: LibraryPaths | None,
        dry_run: bool,
    ) -> tuple[LinkResult, HistoryEntry]:
        entry = self.history.get_last_history_entry()
        if entry is None:
            raise NoHistoryError()

        records = self.history.get_linked_files(entry.id)
        result = LinkResult(dest_dir=entry.dest_dir)
        touched: list[str] = []

        for record in records:
            path = record.dest_path
            try:
                size = os.lstat(path).st_size
            except FileNotFoundError:
                result.skipped_count += 1
                continue
            except OSError as e:
                log.warning("Cannot stat %s: %s", path, e)
                result.failed_count += 1
                continue

            if not dry_run:
                try:
                    os.remove(path)
                except OSError as e:
                    log.warning("Failed to remove %s: %s", path, e)
                    result.failed_count += 1
                    continue
                parent = os.path.dirname(path)
                if parent not in touched:
                    touched.append(parent)

            result.linked_count += 1
            result.total_bytes += size
            result.files.append(path)

        if dry_run:
            return result, entry

        roots = paths.roots() if paths is not None else ()
        for directory in touched:
            prune_upward(directory, roots)

        self.history.delete_history(entry.id)
        log.info(
            "Undid history entry %d (%s): %d removed, %d missing, %d failed",
            entry.id, entry.show_name,
            result.linked_count, result.skipped_count, result.failed_count,
        )
        return result, entry

    # -- unlink -----------------------------------------------------

    def unlink(
        self,
        target_dir: str | Path,
        paths: LibraryPaths | None = None,
        dry_run: bool = False,
    ) -> LinkResult:
        """
        Remove every video file under *target_dir*, then prune empty dirs.

        Not recorded in the ledger and cannot be undone.  The library
        roots in *paths* are never removed.
        """
        if dry_run:
            return self._unlink(target_dir, paths, dry_run=True)
        with self._lock:
            return self._unlink(target_dir, paths, dry_run=False)

    def _unlink(
        self,
        target_dir: str | Path,
        paths: LibraryPaths | None,
        dry_run: bool,
    ) -> LinkResult:
        result = LinkResult(dest_dir=str(target_dir))

        for root, dirs, files in os.walk(target_dir):
            dirs.sort()
            for name in sorted(files):
                if not self.classifier.is_video(name):
                    continue
                path = os.path.join(root, name)
                try:
                    size = os.lstat(path).st_size
                    if not dry_run:
                        os.remove(path)
                except OSError as e:
                    log.warning("Failed to remove %s: %s", path, e)
                    result.failed_count += 1
                    continue
                result.linked_count += 1
                result.total_bytes += size
                result.files.append(path)

        if not dry_run:
            prune_empty_dirs(target_dir, keep=paths.roots() if paths is not None else ())
            log.info("Unlinked %d files under %s", result.linked_count, target_dir)
        return result


def _is_dir(path: Path) -> bool:
    try:
        return stat.S_ISDIR(os.stat(path).st_mode)
    except OSError as e:
        raise LinkError(f"stat source {path}: {e}") from e
