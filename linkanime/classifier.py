"""Recognizes video files and season directories."""
import os
import re
from pathlib import Path
from typing import Iterable

DEFAULT_VIDEO_EXTENSIONS = ("mkv", "mp4", "avi")

# "Season 2", "season 02", "S2", "S02" -- whole name only
_SEASON_DIR = re.compile(r'^(?:season\s*0*(\d+)|s0*(\d+))$', re.IGNORECASE)


def season_number_of(dirname: str) -> int | None:
    """Return the season number encoded in a directory name, or None.

    ``Season 00`` and ``S0`` are season 0 (specials).
    """
    match = _SEASON_DIR.match(dirname)
    if match is None:
        return None
    digits = match.group(1) or match.group(2)
    # Absurdly long numbers are not season folders
    if len(digits) > 4:
        return None
    return int(digits)


def find_season_dirs(path: str | Path) -> dict[int, Path]:
    """Map season numbers to the season subdirectories directly under *path*.

    Unreadable or missing directories yield an empty mapping.
    """
    seasons: dict[int, Path] = {}
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                if not entry.is_dir():
                    continue
                number = season_number_of(entry.name)
                if number is not None:
                    seasons[number] = Path(entry.path)
    except OSError:
        return {}
    return seasons


class VideoClassifier:
    """Case-insensitive video extension matcher.

    Usage::

        classifier = VideoClassifier(["mkv", ".MP4"])
        classifier.is_video("Episode 01.mkv")
    """

    def __init__(self, extensions: Iterable[str] | None = None):
        exts = extensions if extensions is not None else DEFAULT_VIDEO_EXTENSIONS
        self.extensions = frozenset(
            ext.strip().lstrip('.').lower() for ext in exts if ext.strip()
        )

    def is_video(self, filename: str | Path) -> bool:
        suffix = Path(filename).suffix
        return bool(suffix) and suffix[1:].lower() in self.extensions

    def __repr__(self) -> str:
        return f"VideoClassifier({sorted(self.extensions)!r})"


_default = VideoClassifier()


def is_video(filename: str | Path) -> bool:
    """Check a file name against the default extensions (mkv, mp4, avi)."""
    return _default.is_video(filename)
