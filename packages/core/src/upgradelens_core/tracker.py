"""Per-module analysis history.

Each module keeps its last ten analyses, newest first, under
``<prefix>.analysis_history.<module>``. The history answers two questions
for the CLI: when was this module last analysed, and is that result stale
enough to analyse again.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from upgradelens_store.base import BaseStore

logger = logging.getLogger(__name__)

_HISTORY_LIMIT = 10
_DEFAULT_RECHECK_INTERVAL = 604800  # one week


class AnalysisTracker:
    def __init__(
        self,
        store: BaseStore,
        prefix: str = "upgradelens",
        recheck_interval: int = _DEFAULT_RECHECK_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prefix = prefix
        self.recheck_interval = recheck_interval
        self._clock = clock

    def _key(self, module: str) -> str:
        return f"{self.prefix}.analysis_history.{module}"

    def history(self, module: str) -> list[dict]:
        """Return the module's analyses, newest first."""
        return self.store.get(self._key(module), [])

    def _save(self, module: str, history: list[dict]) -> None:
        self.store.set(self._key(module), history[:_HISTORY_LIMIT])

    def start_analysis(self, module: str, analysis_type: str, context: dict | None = None) -> None:
        entry = {
            "type": analysis_type,
            "start_time": self._clock(),
            "status": "in_progress",
            "context": context or {},
        }
        self._save(module, [entry, *self.history(module)])

    def complete_analysis(self, module: str, results: dict, success: bool = True) -> None:
        """Close the most recent entry. Does nothing if start_analysis was never called."""
        history = self.history(module)
        if not history:
            logger.debug("complete_analysis(%s) without a started entry; ignoring", module)
            return
        history[0]["end_time"] = self._clock()
        history[0]["status"] = "completed" if success else "failed"
        history[0]["results"] = results
        self._save(module, history)

    def last_analysis_time(self, module: str, analysis_type: str | None = None) -> float | None:
        history = self.history(module)
        if not history:
            return None
        if analysis_type is None:
            return history[0].get("end_time")
        for entry in history:
            if entry["type"] == analysis_type and entry["status"] == "completed":
                return entry.get("end_time")
        return None

    def needs_reanalysis(self, module: str, analysis_type: str) -> bool:
        last = self.last_analysis_time(module, analysis_type)
        if not last:
            return True
        return (self._clock() - last) > self.recheck_interval

    def stats(self, modules: list[str]) -> dict:
        """Summarise history across the given modules."""
        stats: dict = {
            "total_analyzed": 0,
            "needs_reanalysis": 0,
            "never_analyzed": 0,
            "last_analysis": None,
            "by_type": {},
        }
        for module in modules:
            history = self.history(module)
            if not history:
                stats["never_analyzed"] += 1
                continue
            stats["total_analyzed"] += 1
            if self.needs_reanalysis(module, history[0]["type"]):
                stats["needs_reanalysis"] += 1
            for entry in history:
                stats["by_type"][entry["type"]] = stats["by_type"].get(entry["type"], 0) + 1
            end_time = history[0].get("end_time")
            if end_time and (stats["last_analysis"] is None or end_time > stats["last_analysis"]):
                stats["last_analysis"] = end_time
        return stats
