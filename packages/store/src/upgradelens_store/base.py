"""Abstract key-value store interface.

Batch checkpoints, finished results, backup bookkeeping and analysis history
all live behind this interface. upgradelens_core depends on BaseStore, not
on a concrete backend, so backends are swappable without touching the
pipeline.

Keys are flat dotted strings (``upgradelens.batch.<id>``). Values must be
JSON-serialisable; backends are free to store them however they like.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StoreError(Exception):
    """Raised when the backing store cannot read or write a value.

    Store failures are the one class of error the batch orchestrator does
    not absorb per file: losing a checkpoint means losing resumability.
    """


class BaseStore(ABC):
    """Pluggable persistence layer for pipeline state."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default when absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Persist value under key, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""

    def keys(self, prefix: str = "") -> list[str]:
        """Return stored keys starting with prefix, sorted.

        Optional: used to list unfinished batches. Backends that cannot
        enumerate keys return an empty list.
        """
        return []

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
