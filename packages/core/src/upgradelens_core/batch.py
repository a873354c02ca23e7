"""Batch orchestration: select files, chunk them, analyse, checkpoint, finish.

Lifecycle of a run:
    create_batch()        → files selected and chunked, run persisted,
                            current-batch pointer set
    process_next_chunk()  → one chunk analysed, checkpoint after every file
    ...                     (repeat until the run is exhausted)
    finish()              → results + aggregate persisted, run state deleted

A run interrupted anywhere between checkpoints is picked up by resume() at
the first file that was not yet checkpointed. Only one run can be active at
a time; the current-batch pointer is the lock.

Per-file failures are recorded against the file and never stop the run.
Two things do stop it: a ConfigError from the analyzer (the credential was
rejected, so every later file would fail too) and a StoreError (a lost
checkpoint means lost resumability).
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime

from upgradelens_core.aggregator import aggregate
from upgradelens_core.exceptions import (
    AnalysisError,
    BatchInProgressError,
    ConfigError,
    NothingToResumeError,
    ScanError,
)
from upgradelens_core.models import (
    AnalysisRequest,
    AnalysisResult,
    BatchReport,
    BatchRun,
    Chunk,
    FileOutcome,
    Outcome,
    ProgressUpdate,
    utc_now,
)
from upgradelens_core.providers.anthropic import AnthropicAnalyzer
from upgradelens_core.providers.openai import OpenAIAnalyzer
from upgradelens_core.providers.static import StaticAnalyzer
from upgradelens_core.scanner import DEFAULT_EXCLUDE, DEFAULT_EXCLUDE_DIRS, DEFAULT_INCLUDE, select_files
from upgradelens_core.tracker import AnalysisTracker
from upgradelens_core.utils.files import read_source
from upgradelens_store.base import BaseStore, StoreError

logger = logging.getLogger(__name__)

_DEFAULT_CHUNK_SIZE = 50


def get_analyzer(config: dict):
    """Build the analyzer selected by config['provider']."""
    provider = config.get("provider", "openai")
    if provider == "static":
        return StaticAnalyzer()

    common = {
        "model": config.get("model"),
        "max_retries": config.get("max_retries", 3),
        "base_delay": config.get("retry_base_delay", 7),
        "max_tokens": config.get("max_tokens", 2000),
        "timeout": config.get("timeout", 30),
        "max_chars_per_file": config.get("max_chars_per_file"),
        "test_mode": bool(config.get("test_mode")),
    }
    if provider == "openai":
        return OpenAIAnalyzer(api_key=config.get("openai_api_key"), **common)
    if provider == "anthropic":
        return AnthropicAnalyzer(api_key=config.get("anthropic_api_key"), **common)
    raise ConfigError(f"Unknown provider: {provider!r}. Choose 'openai', 'anthropic' or 'static'.")


def _new_batch_id() -> str:
    return f"upgrade_{uuid.uuid4().hex[:13]}"


class BatchAnalyzer:
    def __init__(
        self,
        analyzer,
        store: BaseStore,
        tracker: AnalysisTracker | None = None,
        config: dict | None = None,
        clock: Callable[[], float] = time.time,
    ):
        config = config or {}
        self.analyzer = analyzer
        self.store = store
        self.tracker = tracker
        self.prefix = config.get("state_prefix", "upgradelens")
        self.chunk_size = config.get("batch_size", _DEFAULT_CHUNK_SIZE)
        self.include = config.get("include_patterns", DEFAULT_INCLUDE)
        self.exclude = config.get("exclude_patterns", DEFAULT_EXCLUDE)
        self.exclude_dirs = config.get("exclude_dirs", DEFAULT_EXCLUDE_DIRS)
        self.framework_version = str(config.get("framework_version", "9"))
        self.target_version = str(config.get("target_version", "10"))
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Store keys                                                           #
    # ------------------------------------------------------------------ #

    @property
    def current_key(self) -> str:
        return f"{self.prefix}.current_batch"

    def run_key(self, batch_id: str) -> str:
        return f"{self.prefix}.batch.{batch_id}"

    @property
    def results_key(self) -> str:
        return f"{self.prefix}.analysis_results"

    @property
    def summary_key(self) -> str:
        return f"{self.prefix}.analysis_summary"

    @property
    def last_completed_key(self) -> str:
        return f"{self.prefix}.last_completed"

    def _checkpoint(self, run: BatchRun) -> None:
        self.store.set(self.run_key(run.batch_id), run.to_dict())

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    def active_batch_id(self) -> str | None:
        """Return the id of the active run, clearing a pointer whose run state is gone."""
        batch_id = self.store.get(self.current_key)
        if not batch_id:
            return None
        if self.store.get(self.run_key(batch_id)) is None:
            logger.warning("Clearing dangling current-batch pointer %s", batch_id)
            self.store.delete(self.current_key)
            return None
        return batch_id

    def create_batch(
        self,
        modules: list[str],
        chunk_size: int | None = None,
        analysis_type: str = "general",
    ) -> BatchRun:
        """Select and chunk the files of each module and persist a new run.

        A module whose directory cannot be scanned gets an error entry keyed
        by its path and contributes no files.
        """
        active = self.active_batch_id()
        if active:
            raise BatchInProgressError(active)

        chunk_size = chunk_size or self.chunk_size
        if chunk_size < 1:
            raise ConfigError(f"Chunk size must be at least 1, got {chunk_size}")

        chunks: list[Chunk] = []
        errors: dict[str, str] = {}
        for module in modules:
            try:
                files = select_files(module, self.include, self.exclude, self.exclude_dirs)
            except ScanError as e:
                logger.warning("Skipping module %s: %s", module, e)
                errors[module] = str(e)
                continue
            for start in range(0, len(files), chunk_size):
                chunks.append(Chunk(module=module, files=files[start : start + chunk_size]))

        run = BatchRun(
            batch_id=_new_batch_id(),
            total_files=sum(len(c.files) for c in chunks),
            chunks=chunks,
            errors=errors,
            analysis_type=analysis_type,
            modules=list(modules),
        )
        self._checkpoint(run)
        self.store.set(self.current_key, run.batch_id)

        if self.tracker is not None:
            for module in modules:
                if module not in errors:
                    self.tracker.start_analysis(module, analysis_type, {"batch_id": run.batch_id})

        logger.info(
            "Created batch %s: %d file(s) in %d chunk(s) across %d module(s)",
            run.batch_id,
            run.total_files,
            len(chunks),
            len(modules),
        )
        return run

    def resume(self, batch_id: str | None = None) -> BatchRun:
        """Load a persisted run and make it the active one again.

        Without batch_id the currently active run is resumed. Resuming a
        different run while one is active raises BatchInProgressError.
        """
        active = self.active_batch_id()
        if active and batch_id and batch_id != active:
            raise BatchInProgressError(active)
        batch_id = batch_id or active
        data = self.store.get(self.run_key(batch_id)) if batch_id else None
        if not data:
            raise NothingToResumeError(f"Nothing to resume for batch {batch_id or '(none)'}")

        run = BatchRun.from_dict(data)
        run.state = "running"
        self._checkpoint(run)
        self.store.set(self.current_key, run.batch_id)
        logger.info(
            "Resuming batch %s at %d/%d file(s)",
            run.batch_id,
            run.files_processed,
            run.total_files,
        )
        return run

    def process_next_chunk(self, run: BatchRun) -> ProgressUpdate:
        """Analyse the remaining files of the current chunk, in order.

        The run is checkpointed after every file. On a FATAL outcome the
        cursor stays on the failing file so resume() retries it.
        """
        if run.exhausted:
            return self._progress(run)

        chunk = run.chunks[run.chunk_index]
        run.current_module = chunk.module
        for path in chunk.files[run.offset :]:
            outcome = self._process_file(run, chunk.module, path)
            if outcome.outcome is Outcome.FATAL:
                run.state = "aborted"
                self._checkpoint(run)
                logger.error("Batch %s aborted at %s: %s", run.batch_id, path, outcome.error)
                return self._progress(run, Outcome.FATAL)

            run.offset += 1
            if run.offset >= len(chunk.files):
                run.chunk_index += 1
                run.offset = 0
            self._checkpoint(run)

        return self._progress(run)

    def _process_file(self, run: BatchRun, module: str, path: str) -> FileOutcome:
        try:
            source = read_source(path)
        except OSError as e:
            run.errors[path] = f"Could not read file: {e}"
            run.files_processed += 1
            return FileOutcome(path, Outcome.PARTIAL, run.errors[path])

        request = AnalysisRequest(
            file_path=path,
            module=module,
            framework_version=self.framework_version,
            target_version=self.target_version,
            analysis_type=run.analysis_type,
        )
        try:
            result = self.analyzer.analyze(source, request)
        except ConfigError as e:
            run.errors[path] = str(e)
            return FileOutcome(path, Outcome.FATAL, str(e))
        except AnalysisError as e:
            logger.warning("Analysis failed for %s: %s", path, e)
            run.errors[path] = str(e)
            run.files_processed += 1
            return FileOutcome(path, Outcome.PARTIAL, str(e))

        run.results[path] = result
        run.errors.pop(path, None)
        run.files_processed += 1
        logger.debug("Analyzed %s: %d issue(s)", path, len(result.issues))
        return FileOutcome(path, Outcome.SUCCESS)

    def _progress(self, run: BatchRun, outcome: Outcome = Outcome.SUCCESS) -> ProgressUpdate:
        finished = run.files_processed / run.total_files if run.total_files else 1.0
        return ProgressUpdate(
            batch_id=run.batch_id,
            current_module=run.current_module,
            files_processed=run.files_processed,
            total_files=run.total_files,
            error_count=len(run.errors),
            finished=finished,
            done=run.exhausted,
            outcome=outcome,
        )

    def finish(self, run: BatchRun, success: bool) -> BatchReport:
        """Close out a run.

        On success the run's results are merged into the stored result map
        (a re-analysed file supersedes its old entry), the aggregate is
        recomputed, and the transient run state is deleted. On failure the
        run state is left in place for resume().
        """
        duration = self._duration(run)

        if not success:
            logger.error(
                "Batch %s failed after %d/%d file(s); resume with --resume %s",
                run.batch_id,
                run.files_processed,
                run.total_files,
                run.batch_id,
            )
            return BatchReport(
                batch_id=run.batch_id,
                status="failed",
                files_processed=run.files_processed,
                total_files=run.total_files,
                error_count=len(run.errors),
                duration_seconds=duration,
            )

        stored = self.store.get(self.results_key, {})
        stored.update({path: result.to_dict() for path, result in run.results.items()})
        merged = {path: AnalysisResult.from_dict(data) for path, data in stored.items()}
        summary = aggregate(merged)

        self.store.set(self.results_key, stored)
        self.store.set(self.summary_key, summary)
        self.store.set(self.last_completed_key, utc_now())
        self.store.delete(self.run_key(run.batch_id))
        if self.store.get(self.current_key) == run.batch_id:
            self.store.delete(self.current_key)

        if self.tracker is not None:
            run_summary = aggregate(run.results)
            for module in run.modules:
                if module in run.errors:
                    continue
                module_counts = run_summary["modules"].get(module, {})
                self.tracker.complete_analysis(module, module_counts, success=True)

        status = "completed_with_errors" if run.errors else "completed"
        logger.info(
            "Analysis completed: %d files processed in %.0f seconds with %d errors.",
            run.files_processed,
            duration,
            len(run.errors),
        )
        return BatchReport(
            batch_id=run.batch_id,
            status=status,
            files_processed=run.files_processed,
            total_files=run.total_files,
            error_count=len(run.errors),
            duration_seconds=duration,
            summary=summary,
        )

    def run(self, run: BatchRun, on_progress: Callable[[ProgressUpdate], None] | None = None) -> BatchReport:
        """Drive a run chunk by chunk until it is exhausted or aborts."""
        try:
            while not run.exhausted:
                update = self.process_next_chunk(run)
                if on_progress is not None:
                    on_progress(update)
                if update.outcome is Outcome.FATAL:
                    return self.finish(run, success=False)
        except StoreError:
            self.finish(run, success=False)
            raise
        return self.finish(run, success=True)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def get_progress(self) -> dict:
        """Progress of the active run, or {} when none is active."""
        batch_id = self.store.get(self.current_key)
        if not batch_id:
            return {}
        data = self.store.get(self.run_key(batch_id))
        if not data:
            return {}
        run = BatchRun.from_dict(data)
        return {
            "batch_id": run.batch_id,
            "current_module": run.current_module,
            "files_processed": run.files_processed,
            "total_files": run.total_files,
            "progress": run.progress_percent,
            "errors": dict(run.errors),
            "state": run.state,
        }

    def stored_results(self) -> dict[str, AnalysisResult]:
        """Results persisted by finished runs, keyed by file path."""
        return {path: AnalysisResult.from_dict(data) for path, data in self.store.get(self.results_key, {}).items()}

    def pending_batches(self) -> list[str]:
        """Ids of all persisted, unfinished runs."""
        marker = f"{self.prefix}.batch."
        return [key[len(marker) :] for key in self.store.keys(marker)]

    def abandon(self, batch_id: str | None = None) -> bool:
        """Delete a run's state without finishing it. Returns False if there was none."""
        batch_id = batch_id or self.store.get(self.current_key)
        if not batch_id or self.store.get(self.run_key(batch_id)) is None:
            return False
        self.store.delete(self.run_key(batch_id))
        if self.store.get(self.current_key) == batch_id:
            self.store.delete(self.current_key)
        logger.info("Abandoned batch %s", batch_id)
        return True

    def _duration(self, run: BatchRun) -> float:
        try:
            started = datetime.fromisoformat(run.started_at).timestamp()
        except ValueError:
            return 0.0
        return max(0.0, self._clock() - started)
