"""Configuration for linkanime.

Defaults come from ``LA_*`` environment variables, optionally loaded from
a ``.env`` file.  User overrides saved through ``SettingsManager`` win
over the environment.  ``resolve_paths`` folds both into the
``LibraryPaths`` handed to every engine call; the engine itself never
looks at either source.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from .classifier import DEFAULT_VIDEO_EXTENSIONS

if TYPE_CHECKING:
    from .settings import SettingsManager

DB_FILENAME = "linkanime.db"


# ---------------------------------------------------------------------------
# App-data directory
# ---------------------------------------------------------------------------

def app_data_dir() -> Path:
    """Return the platform app-data directory for linkanime (not created)."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "linkanime"


# ---------------------------------------------------------------------------
# Environment config
# ---------------------------------------------------------------------------

@dataclass
class Config:
    """Process-level defaults."""
    data_dir: Path = field(default_factory=app_data_dir)
    download_dir: str = "/data/downloads/complete/anime"
    media_dir: str = "/data/media/anime"
    movies_dir: str = "/data/media/anime-movies"
    video_extensions: list[str] = field(
        default_factory=lambda: list(DEFAULT_VIDEO_EXTENSIONS)
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / DB_FILENAME

    @property
    def settings_path(self) -> Path:
        return self.data_dir / "settings.json"


@dataclass(frozen=True)
class LibraryPaths:
    """Resolved library roots for one engine call."""
    download_dir: str
    media_dir: str
    movies_dir: str

    def roots(self) -> tuple[str, ...]:
        """Library roots that directory pruning must never remove."""
        return (self.media_dir, self.movies_dir)


def load_env_files() -> None:
    """Load ``.env`` from the current directory, then the home directory.

    Variables already present in the environment are left untouched.
    """
    for env_path in (Path.cwd() / ".env", Path.home() / ".env"):
        if env_path.exists():
            load_dotenv(env_path, override=False)


def _env_str(key: str, fallback: str) -> str:
    value = os.environ.get(key, "").strip()
    return value or fallback


def _env_list(key: str, fallback: list[str]) -> list[str]:
    value = os.environ.get(key, "")
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or list(fallback)


def load_config(use_env_files: bool = True) -> Config:
    """Build a ``Config`` from the environment."""
    if use_env_files:
        load_env_files()
    defaults = Config()
    data_dir = os.environ.get("LA_DATA_DIR", "").strip()
    return Config(
        data_dir=Path(data_dir) if data_dir else defaults.data_dir,
        download_dir=_env_str("LA_DOWNLOAD_DIR", defaults.download_dir),
        media_dir=_env_str("LA_MEDIA_DIR", defaults.media_dir),
        movies_dir=_env_str("LA_MOVIES_DIR", defaults.movies_dir),
        video_extensions=_env_list("LA_VIDEO_EXTENSIONS", defaults.video_extensions),
    )


def resolve_paths(config: Config, settings: SettingsManager | None = None) -> LibraryPaths:
    """Apply saved setting overrides on top of *config*."""
    def pick(key: str, default: str) -> str:
        if settings is None:
            return default
        value = settings.get(key)
        return value.strip() if isinstance(value, str) and value.strip() else default

    return LibraryPaths(
        download_dir=pick("download_dir", config.download_dir),
        media_dir=pick("media_dir", config.media_dir),
        movies_dir=pick("movies_dir", config.movies_dir),
    )
