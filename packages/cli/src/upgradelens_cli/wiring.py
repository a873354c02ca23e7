"""Build core services from the CLI context.

Commands get their config and store from ctx.obj; these helpers turn them
into the objects upgradelens_core expects, so every command constructs
them the same way.
"""

from __future__ import annotations

import click

from upgradelens_core.batch import BatchAnalyzer
from upgradelens_core.patches import PatchGenerator
from upgradelens_core.rollback import RollbackManager
from upgradelens_core.tracker import AnalysisTracker


def context_objects(ctx: click.Context) -> tuple[dict, object]:
    obj = ctx.obj or {}
    store = obj.get("store")
    if store is None:
        raise click.UsageError("No store available. Check the 'store' setting in .upgradelens.yml.")
    return obj.get("config", {}), store


def build_tracker(config: dict, store) -> AnalysisTracker:
    return AnalysisTracker(
        store,
        prefix=config.get("state_prefix", "upgradelens"),
        recheck_interval=config.get("recheck_interval", 604800),
    )


def build_batch(config: dict, store, analyzer=None) -> BatchAnalyzer:
    return BatchAnalyzer(analyzer, store, tracker=build_tracker(config, store), config=config)


def build_rollback(config: dict, store) -> RollbackManager:
    return RollbackManager(
        store,
        backup_dir=config.get("backup_dir", ".upgradelens-backups"),
        prefix=config.get("state_prefix", "upgradelens"),
        cleanup_backups=config.get("cleanup_backups", True),
    )


def build_patch_generator(config: dict, store) -> PatchGenerator:
    return PatchGenerator(build_rollback(config, store), patch_format=config.get("patch_format", "unified"))
