"""
Key-value persistence used for per-shop local trial records.
"""
from pathlib import Path
from typing import Dict, Optional, Protocol
from urllib.parse import quote


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryStore:
    """Process-local store, mostly for tests and embedding."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


def key_to_filename(key: str) -> str:
    """Percent-encoded, so distinct keys map to distinct files inside the directory."""
    return f"{quote(key, safe='')}.json"


class JsonFileStore:
    """
    One file per key under `directory`.
    Writes go to a temp file first and are renamed into place.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self.directory / key_to_filename(key)

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        temp_path = path.with_name(f"{path.name}.tmp")
        temp_path.write_text(value, encoding="utf-8")
        temp_path.replace(path)
