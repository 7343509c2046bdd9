"""
Pytest configuration and fixtures for linkanime tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from linkanime.classifier import VideoClassifier
from linkanime.config import LibraryPaths
from linkanime.history import LinkHistory
from linkanime.linker import LinkEngine


def make_video(path: Path, size: int = 16) -> Path:
    """Create a fake video file of *size* bytes (parents included)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


@pytest.fixture
def library(tmp_path) -> LibraryPaths:
    """Download/media/movies roots under tmp_path (all created)."""
    paths = LibraryPaths(
        download_dir=str(tmp_path / "downloads"),
        media_dir=str(tmp_path / "media"),
        movies_dir=str(tmp_path / "movies"),
    )
    for d in (paths.download_dir, paths.media_dir, paths.movies_dir):
        Path(d).mkdir()
    return paths


@pytest.fixture
def history():
    """In-memory ledger."""
    ledger = LinkHistory(":memory:")
    yield ledger
    ledger.close()


@pytest.fixture
def engine(history) -> LinkEngine:
    return LinkEngine(history, VideoClassifier(["mkv", "mp4", "avi"]))


@pytest.fixture
def season_pack(library) -> Path:
    """A flat release folder with three episodes and a non-video file."""
    release = Path(library.download_dir) / "[SubsPlease] Frieren S01 (1080p)"
    for ep in (3, 1, 2):
        make_video(release / f"Frieren - {ep:02d}.mkv", size=10 * ep)
    (release / "info.nfo").write_text("nfo")
    return release


@pytest.fixture
def multi_season_pack(library) -> Path:
    """A release folder with Season 1/ and Season 2/, three episodes each."""
    release = Path(library.download_dir) / "Dr.STONE.Complete"
    for season in (1, 2):
        for ep in (1, 2, 3):
            make_video(release / f"Season {season}" / f"Dr STONE S{season:02d}E{ep:02d}.mkv")
    return release
