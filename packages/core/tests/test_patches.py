"""Tests for patch generation, application and restore-on-failure."""

import pytest

from upgradelens_core.exceptions import PatchError
from upgradelens_core.models import Issue, Patch
from upgradelens_core.patches import PatchGenerator, apply_change, apply_unified, make_diff
from upgradelens_core.rollback import RollbackManager
from upgradelens_store.memory import MemoryStore

SOURCE = """<?php

function example_page() {
  drupal_set_message('Saved');
  $path = drupal_get_path('module', 'example');
  return [];
}
"""


def _change(current, suggested, line=None):
    return Issue(
        type="deprecation",
        description="deprecated",
        priority="critical",
        current_code=current,
        suggested_code=suggested,
        line_number=line,
    )


MESSENGER = _change("drupal_set_message('Saved');", "\\Drupal::messenger()->addMessage('Saved');", 4)


@pytest.fixture
def generator(tmp_path):
    rollback = RollbackManager(MemoryStore(), backup_dir=str(tmp_path / "backups"))
    return PatchGenerator(rollback)


@pytest.fixture
def target(tmp_path):
    path = tmp_path / "example.module"
    path.write_text(SOURCE)
    return path


# ---------------------------------------------------------------------------
# apply_change
# ---------------------------------------------------------------------------


class TestApplyChange:
    def test_replaces_at_line(self):
        out = apply_change(SOURCE, MESSENGER)
        assert "\\Drupal::messenger()->addMessage('Saved');" in out
        assert "drupal_set_message" not in out

    def test_prefers_reported_line_over_first_occurrence(self):
        content = "foo();\nbar();\nfoo();\n"
        out = apply_change(content, _change("foo();", "baz();", 3))
        assert out == "foo();\nbar();\nbaz();\n"

    def test_falls_back_to_whitespace_tolerant_search(self):
        content = "if ($x) {\n      drupal_set_message('Saved');\n}\n"
        change = _change("drupal_set_message('Saved');", "ok();", 99)
        assert apply_change(content, change) == "if ($x) {\n      ok();\n}\n"

    def test_backslashes_in_replacement_are_literal(self):
        out = apply_change("x();\n", _change("x();", "\\Drupal\\node\\Entity\\Node::load(1);"))
        assert out == "\\Drupal\\node\\Entity\\Node::load(1);\n"

    def test_no_match_returns_content_unchanged(self):
        assert apply_change(SOURCE, _change("nowhere();", "somewhere();")) == SOURCE


# ---------------------------------------------------------------------------
# make_diff / apply_unified
# ---------------------------------------------------------------------------


class TestUnifiedDiff:
    def test_diff_applies_back_to_modified(self):
        modified = apply_change(SOURCE, MESSENGER)
        diff = make_diff(SOURCE, modified, "example.module")
        assert diff.startswith("--- a/example.module\n+++ b/example.module\n")
        assert apply_unified(SOURCE, diff) == modified

    def test_missing_trailing_newline(self):
        original = "a\nb\nc"
        modified = "a\nB\nc"
        diff = make_diff(original, modified, "f.php")
        assert "\\ No newline at end of file" in diff
        assert apply_unified(original, diff) == modified

    def test_crlf_preserved(self):
        original = "a\r\nb\r\nc\r\n"
        modified = "a\r\nB\r\nc\r\n"
        assert apply_unified(original, make_diff(original, modified, "f.php")) == modified

    def test_mismatched_context_raises(self):
        diff = make_diff(SOURCE, apply_change(SOURCE, MESSENGER), "example.module")
        with pytest.raises(PatchError):
            apply_unified(SOURCE.replace("example_page", "renamed_page"), diff)

    def test_no_hunks_raises(self):
        with pytest.raises(PatchError, match="no hunks"):
            apply_unified(SOURCE, "--- a/x\n+++ b/x\n")

    def test_context_format(self):
        diff = make_diff(SOURCE, apply_change(SOURCE, MESSENGER), "example.module", "context")
        assert diff.startswith("*** a/example.module")


# ---------------------------------------------------------------------------
# PatchGenerator
# ---------------------------------------------------------------------------


class TestPatchGenerator:
    def test_generate_patch(self, generator, target):
        patch = generator.generate_patch(str(target), [MESSENGER])
        assert patch.status == "pending"
        assert len(patch.change_id) == 12
        assert "+  \\Drupal::messenger()->addMessage('Saved');" in patch.diff
        # Generating never touches the file.
        assert target.read_text() == SOURCE

    def test_generate_patch_with_no_applicable_change(self, generator, target):
        with pytest.raises(PatchError):
            generator.generate_patch(str(target), [_change("nowhere();", "x();")])

    def test_generate_patch_missing_file(self, generator, tmp_path):
        with pytest.raises(PatchError):
            generator.generate_patch(str(tmp_path / "missing.php"), [MESSENGER])

    def test_validate_changes(self, generator, target):
        problems = generator.validate_changes(
            [MESSENGER, _change("", "x"), _change("nowhere();", "x();"), _change("return [];", "return;", 500)],
            str(target),
        )
        assert problems == [
            "Change 1 is missing required fields",
            "Original code for change 2 not found in file",
            "Invalid line number for change 3",
        ]

    def test_is_safe(self, generator, target):
        patch = generator.generate_patch(str(target), [MESSENGER])
        assert generator.is_safe(patch) is True
        target.write_text(SOURCE.replace("'Saved'", "'Changed'"))
        assert generator.is_safe(patch) is False

    def test_context_patch_is_never_safe(self, tmp_path, target):
        generator = PatchGenerator(RollbackManager(MemoryStore(), str(tmp_path / "b")), patch_format="context")
        patch = generator.generate_patch(str(target), [MESSENGER])
        assert generator.is_safe(patch) is False

    def test_apply_patch_and_rollback(self, generator, target):
        patch = generator.generate_patch(str(target), [MESSENGER])
        backup = generator.apply_patch(patch)

        assert patch.status == "applied"
        assert "addMessage('Saved')" in target.read_text()
        assert generator.rollback.get_backup(patch.change_id) == backup

        generator.rollback.rollback(patch.change_id)
        assert target.read_text() == SOURCE

    def test_failed_apply_leaves_file_byte_identical(self, generator, target):
        patch = generator.generate_patch(str(target), [MESSENGER])
        drifted = SOURCE.replace("'Saved'", "'Changed'").encode()
        target.write_bytes(drifted)

        with pytest.raises(PatchError):
            generator.apply_patch(patch)
        assert target.read_bytes() == drifted
        assert patch.status == "failed"
        assert generator.rollback.list_backups() == []

    def test_patch_cannot_be_applied_twice(self, generator, target):
        patch = generator.generate_patch(str(target), [MESSENGER])
        generator.apply_patch(patch)
        with pytest.raises(PatchError, match="already applied"):
            generator.apply_patch(patch)

    def test_failed_is_terminal(self):
        patch = Patch(file_path="x", diff="", change_id="abc")
        patch.mark("failed")
        with pytest.raises(ValueError):
            patch.mark("applied")

    def test_save(self, generator, target, tmp_path):
        patch = generator.generate_patch(str(target), [MESSENGER])
        saved = generator.save(patch, str(tmp_path / "patches"))
        assert saved.name.startswith("example.module-")
        assert saved.read_text() == patch.diff

    def test_apply_patch_keeps_non_utf8_bytes_outside_the_change(self, generator, tmp_path):
        path = tmp_path / "legacy.module"
        path.write_bytes(b"<?php\n// Caf\xe9 comment\ndrupal_set_message('Saved');\n")
        change = _change("drupal_set_message('Saved');", "\\Drupal::messenger()->addMessage('Saved');", 3)

        patch = generator.generate_patch(str(path), [change])
        assert generator.is_safe(patch) is True
        generator.apply_patch(patch)

        lines = path.read_bytes().split(b"\n")
        assert lines[0] == b"<?php"
        assert lines[1] == b"// Caf\xe9 comment"
        assert lines[2] == b"\\Drupal::messenger()->addMessage('Saved');"

    def test_save_keeps_non_utf8_bytes(self, generator, tmp_path):
        path = tmp_path / "legacy.module"
        path.write_bytes(b"<?php\n$label = 'Caf\xe9';\ndrupal_set_message('Saved');\n")
        change = _change("drupal_set_message('Saved');", "\\Drupal::messenger()->addMessage('Saved');", 3)
        patch = generator.generate_patch(str(path), [change])

        saved = generator.save(patch, str(tmp_path / "patches"))
        assert b" $label = 'Caf\xe9';\n" in saved.read_bytes()
