import json
import logging
import os
import tempfile
from pathlib import Path

from flashgen.domain.interfaces import KeyValueStore


class JsonFileStore(KeyValueStore):
    """
    String key-value store persisted as a single JSON object on disk.

    Writes go to a temporary file that replaces the target, so a crash mid-write
    never leaves a truncated file behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        self.logger.debug(f"Stored {len(value)} chars under '{key}'")

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)
