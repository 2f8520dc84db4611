"""
Key-value stores for the session blob.

FileStore is the persistent store: a small JSON object on disk, one string
value per key. MemoryStore is session-scoped storage for the current process
(PKCE verifier, handshake state nonce).

Both expose get / set / remove / clear. Values are opaque strings.
"""

import json
import os
import tempfile
from pathlib import Path


class MemoryStore:
    """Process-lifetime key-value store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class FileStore:
    """
    JSON-file-backed key-value store.

    Writes go through a temp file + rename so a crash mid-write never leaves
    a truncated file behind. The file is created with owner-only permissions
    since it holds portal tokens.

    Raises OSError / ValueError on unreadable files; callers decide whether
    that matters (session restore treats it as "no session").
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        try:
            data = self._read_all()
        except ValueError:
            # Corrupt file: nothing worth keeping
            self.path.unlink(missing_ok=True)
            return
        if key in data:
            del data[key]
            if data:
                self._write_all(data)
            else:
                self.path.unlink(missing_ok=True)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
