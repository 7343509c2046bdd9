"""User setting overrides stored in a JSON file."""
import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

# Keys the path resolver understands; empty means "use the config default"
DEFAULT_SETTINGS: dict[str, Any] = {
    "download_dir": "",
    "media_dir": "",
    "movies_dir": "",
}


class SettingsManager:
    """Settings store backed by a JSON file.

    Usage:
        mgr = SettingsManager(path)
        mgr.set("media_dir", "/mnt/anime")
        mgr.save()
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data = self._load()

    # -- public API -------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        fallback = DEFAULT_SETTINGS.get(key, default)
        return self._data.get(key, fallback)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def save(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self.path, e)
            return False

    def all(self) -> dict[str, Any]:
        """Return a merged view: defaults + saved values."""
        merged = DEFAULT_SETTINGS.copy()
        merged.update(self._data)
        return merged

    def reload(self) -> None:
        self._data = self._load()

    # -- private ----------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                log.warning("Ignoring settings file %s: not a JSON object", self.path)
            except (json.JSONDecodeError, OSError) as e:
                log.warning("Ignoring unreadable settings file %s: %s", self.path, e)
        return {}
