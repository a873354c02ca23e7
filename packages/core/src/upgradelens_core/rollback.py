"""Backups for patched files and rollback by change id.

A backup is a byte-for-byte copy of the target taken right before a patch
is applied. Bookkeeping (change id → original path, backup path, time)
lives in the key-value store under ``<prefix>.backups`` so rollbacks work
from a later CLI invocation.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from collections.abc import Callable
from pathlib import Path

from upgradelens_core.exceptions import PatchError
from upgradelens_core.models import Backup
from upgradelens_core.utils.files import atomic_write
from upgradelens_store.base import BaseStore

logger = logging.getLogger(__name__)


class RollbackManager:
    def __init__(
        self,
        store: BaseStore,
        backup_dir: str = ".upgradelens-backups",
        prefix: str = "upgradelens",
        cleanup_backups: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.backup_dir = Path(backup_dir)
        self.cleanup_backups = cleanup_backups
        self._key = f"{prefix}.backups"
        self._clock = clock

    def _load(self) -> dict[str, dict]:
        return self.store.get(self._key, {})

    def list_backups(self) -> list[Backup]:
        """Return registered backups, oldest first."""
        backups = [Backup.from_dict(b) for b in self._load().values()]
        return sorted(backups, key=lambda b: b.created_at)

    def get_backup(self, change_id: str) -> Backup | None:
        entry = self._load().get(change_id)
        return Backup.from_dict(entry) if entry else None

    def create_backup(self, file_path: str, change_id: str) -> Backup:
        """Copy file_path into the backup dir and register it under change_id.

        Raises PatchError if the copy fails; nothing is registered then.
        """
        now = self._clock()
        backup_path = self.backup_dir / f"{Path(file_path).name}.{change_id}.{int(now)}.bak"
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            logger.error("Failed to create backup for %s: %s", file_path, e)
            raise PatchError(f"Failed to create backup for {file_path}: {e}") from e

        backup = Backup(file_path=str(file_path), backup_path=str(backup_path), change_id=change_id, created_at=now)
        backups = self._load()
        backups[change_id] = backup.to_dict()
        self.store.set(self._key, backups)
        logger.debug("Backed up %s to %s", file_path, backup_path)
        return backup

    def validate_backup(self, backup: Backup) -> bool:
        """A usable backup exists, is readable and is not empty."""
        path = Path(backup.backup_path)
        if not path.is_file() or not os.access(path, os.R_OK):
            return False
        return path.stat().st_size > 0

    def restore(self, backup: Backup) -> None:
        """Write the backup's content back over the original file."""
        try:
            atomic_write(backup.file_path, Path(backup.backup_path).read_bytes())
        except OSError as e:
            raise PatchError(f"Failed to restore {backup.file_path} from {backup.backup_path}: {e}") from e

    def rollback(self, change_id: str) -> Backup:
        """Restore the file changed under change_id and forget the backup.

        Raises PatchError when no backup is registered for change_id or the
        restore fails; the bookkeeping entry survives a failed restore.
        """
        backups = self._load()
        if change_id not in backups:
            logger.error("No backup found for change ID: %s", change_id)
            raise PatchError(f"No backup found for change ID: {change_id}")

        backup = Backup.from_dict(backups[change_id])
        if not self.validate_backup(backup):
            raise PatchError(f"Backup for change ID {change_id} is missing or empty: {backup.backup_path}")
        self.restore(backup)

        del backups[change_id]
        self.store.set(self._key, backups)

        if self.cleanup_backups:
            Path(backup.backup_path).unlink(missing_ok=True)

        logger.info("Rolled back changes for %s", backup.file_path)
        return backup

    def discard(self, change_id: str) -> None:
        """Forget a backup without restoring it (used after a successful restore-on-failure)."""
        backups = self._load()
        entry = backups.pop(change_id, None)
        if entry is None:
            return
        self.store.set(self._key, backups)
        if self.cleanup_backups:
            Path(entry["backup_path"]).unlink(missing_ok=True)

    def cleanup_old_backups(self, max_age: int = 604800) -> list[str]:
        """Drop backups older than max_age seconds. Returns the removed change ids."""
        now = self._clock()
        backups = self._load()
        removed = []
        for change_id, entry in list(backups.items()):
            if now - float(entry.get("created_at", 0)) > max_age:
                Path(entry["backup_path"]).unlink(missing_ok=True)
                del backups[change_id]
                removed.append(change_id)
        if removed:
            self.store.set(self._key, backups)
            logger.info("Removed %d expired backup(s)", len(removed))
        return removed
