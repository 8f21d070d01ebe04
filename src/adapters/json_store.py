"""JSON file snapshot adapter.

Implements the core SnapshotStore as a single JSON document that is replaced
atomically (write to a temp file in the same directory, then rename).
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Optional

from core.persistence import SnapshotCorruptedError


class JsonSnapshotStore:
    """Thin file wrapper that satisfies the SnapshotStore contract."""

    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> Optional[dict]:
        """Return the stored snapshot, None if the file doesn't exist yet."""

        if not os.path.exists(self._path):
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SnapshotCorruptedError(f"News store {self._path} is not valid JSON: {exc}") from exc

    def save(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix=".news-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
