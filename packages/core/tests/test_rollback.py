"""Tests for backups and rollback."""

import os

import pytest

from upgradelens_core.exceptions import PatchError
from upgradelens_core.rollback import RollbackManager
from upgradelens_store.memory import MemoryStore


class _Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def manager(tmp_path, clock):
    return RollbackManager(MemoryStore(), backup_dir=str(tmp_path / "backups"), clock=clock)


@pytest.fixture
def target(tmp_path):
    path = tmp_path / "example.module"
    path.write_text("<?php\noriginal();\n")
    return path


def test_create_backup_registers_copy(manager, target, clock):
    backup = manager.create_backup(str(target), "abc123")
    assert backup.backup_path.endswith(f"example.module.abc123.{int(clock.now)}.bak")
    assert manager.validate_backup(backup) is True
    assert manager.get_backup("abc123") == backup
    assert [b.change_id for b in manager.list_backups()] == ["abc123"]


def test_create_backup_of_missing_file_raises(manager, tmp_path):
    with pytest.raises(PatchError):
        manager.create_backup(str(tmp_path / "missing.php"), "abc123")
    assert manager.list_backups() == []


def test_rollback_restores_and_forgets(manager, target):
    backup = manager.create_backup(str(target), "abc123")
    target.write_text("<?php\npatched();\n")

    restored = manager.rollback("abc123")
    assert restored == backup
    assert target.read_text() == "<?php\noriginal();\n"
    assert manager.get_backup("abc123") is None
    assert not os.path.exists(backup.backup_path)


def test_rollback_keeps_backup_file_without_cleanup(tmp_path, target):
    manager = RollbackManager(MemoryStore(), backup_dir=str(tmp_path / "b"), cleanup_backups=False)
    backup = manager.create_backup(str(target), "abc123")
    manager.rollback("abc123")
    assert (tmp_path / "b").exists()
    assert manager.validate_backup(backup) is True


def test_rollback_unknown_change_id(manager):
    with pytest.raises(PatchError, match="No backup found"):
        manager.rollback("nope")


def test_rollback_with_deleted_backup_file(manager, target):
    backup = manager.create_backup(str(target), "abc123")
    target.write_text("<?php\npatched();\n")
    os.unlink(backup.backup_path)
    with pytest.raises(PatchError):
        manager.rollback("abc123")
    assert target.read_text() == "<?php\npatched();\n"
    assert manager.get_backup("abc123") is not None


def test_empty_backup_is_invalid(manager, tmp_path):
    empty = tmp_path / "empty.php"
    empty.write_text("")
    assert manager.validate_backup(manager.create_backup(str(empty), "e1")) is False


def test_cleanup_old_backups(manager, target, clock):
    old = manager.create_backup(str(target), "old")
    clock.now += 500
    manager.create_backup(str(target), "new")
    clock.now += 200

    removed = manager.cleanup_old_backups(max_age=600)
    assert removed == ["old"]
    assert [b.change_id for b in manager.list_backups()] == ["new"]
    assert manager.validate_backup(old) is False


def test_discard(manager, target):
    backup = manager.create_backup(str(target), "abc123")
    manager.discard("abc123")
    manager.discard("abc123")
    assert manager.get_backup("abc123") is None
    assert manager.validate_backup(backup) is False
