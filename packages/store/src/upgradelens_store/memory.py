"""In-memory store — used for --test-mode runs and in tests.

Nothing survives the process, so a run analysed with MemoryStore cannot be
resumed. Values are round-tripped through JSON on write so callers see the
same shapes (lists not tuples, string keys) they would get from SQLiteStore.
"""

from __future__ import annotations

import json
from typing import Any

from upgradelens_store.base import BaseStore, StoreError


class MemoryStore(BaseStore):
    """Dict-backed store with SQLiteStore-compatible value semantics."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value for {key!r} is not JSON-serialisable: {e}") from e

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
