"""Turn suggested changes into diffs, and apply diffs with backup and restore.

Why a pure-Python applier instead of shelling out to `patch`:
- No dependency on a binary that is missing on most Windows machines and
  minimal CI images.
- A dry run (is_safe) and a real run share exactly the same code, so a
  patch that passed is_safe cannot fail differently on apply.

Only unified diffs can be applied. Context diffs (``patch_format: context``)
are generated for human review.
"""

from __future__ import annotations

import difflib
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from upgradelens_core.exceptions import PatchError
from upgradelens_core.models import Backup, Issue, Patch
from upgradelens_core.rollback import RollbackManager
from upgradelens_core.utils.files import atomic_write, read_source_exact, split_lines

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_NO_NEWLINE = "\\ No newline at end of file\n"


def apply_change(content: str, change: Issue) -> str:
    """Replace change.current_code with change.suggested_code in content.

    Tries the lines starting at change.line_number first so a snippet that
    occurs several times is replaced where the analysis found it. Falls
    back to the first match anywhere, tolerating indentation differences.
    Returns content unchanged when nothing matches.
    """
    original, replacement = change.current_code, change.suggested_code
    if not original.strip() or not replacement:
        return content

    lines = split_lines(content)
    if change.line_number and 1 <= change.line_number <= len(lines):
        start = change.line_number - 1
        span = original.count("\n") + 1
        window = "".join(lines[start : start + span])
        if original in window:
            lines[start : start + span] = [window.replace(original, replacement, 1)]
            return "".join(lines)

    pattern = r"\n[ \t]*".join(re.escape(part.strip()) for part in original.strip().split("\n"))
    # Callable replacement: PHP namespaces are full of backslashes.
    new_content, count = re.subn(pattern, lambda _m: replacement, content, count=1)
    if count == 0:
        logger.debug("Original code not found for change: %s", change.description)
    return new_content


def _mark_missing_newlines(diff_lines) -> str:
    out = []
    for line in diff_lines:
        if line.endswith("\n"):
            out.append(line)
        else:
            out.append(line + "\n" + _NO_NEWLINE)
    return "".join(out)


def make_diff(original: str, modified: str, file_name: str, patch_format: str = "unified") -> str:
    a, b = split_lines(original), split_lines(modified)
    differ = difflib.unified_diff if patch_format == "unified" else difflib.context_diff
    return _mark_missing_newlines(differ(a, b, fromfile=f"a/{file_name}", tofile=f"b/{file_name}"))


def apply_unified(original: str, diff: str) -> str:
    """Apply a unified diff to original and return the new text.

    Every context and removed line must match exactly; otherwise PatchError
    is raised and nothing is returned.
    """
    src = split_lines(original)
    lines = split_lines(diff)
    out: list[str] = []
    pos = 0
    hunks = 0
    i = 0

    while i < len(lines):
        match = _HUNK_RE.match(lines[i])
        if not match:
            i += 1
            continue
        hunks += 1
        old_start, old_len = int(match.group(1)), int(match.group(2) or "1")
        new_len = int(match.group(4) or "1")
        start = old_start - 1 if old_len > 0 else old_start
        if start < pos or start > len(src):
            raise PatchError(f"Hunk {hunks} is out of order or beyond the end of the file")
        out.extend(src[pos:start])
        pos = start
        i += 1

        old_left, new_left = old_len, new_len
        while old_left > 0 or new_left > 0:
            if i >= len(lines):
                raise PatchError(f"Hunk {hunks} is truncated")
            line = lines[i]
            i += 1
            if line == "\n":
                tag, text = " ", "\n"
            else:
                tag, text = line[0], line[1:]
            if i < len(lines) and lines[i] == _NO_NEWLINE:
                text = text[:-1] if text.endswith("\n") else text
                i += 1

            if tag in (" ", "-"):
                if pos >= len(src) or src[pos] != text:
                    raise PatchError(f"Hunk {hunks} does not apply at line {pos + 1}")
                pos += 1
                old_left -= 1
                if tag == " ":
                    out.append(text)
                    new_left -= 1
            elif tag == "+":
                out.append(text)
                new_left -= 1
            else:
                raise PatchError(f"Unexpected line in hunk {hunks}: {line!r}")

    if hunks == 0:
        raise PatchError("Patch contains no hunks")
    out.extend(src[pos:])
    return "".join(out)


class PatchGenerator:
    def __init__(self, rollback: RollbackManager, patch_format: str = "unified"):
        self.rollback = rollback
        self.patch_format = patch_format

    def generate_patch(self, file_path: str, changes: list[Issue], description: str = "") -> Patch:
        """Apply changes in memory and diff the result against the file.

        Raises PatchError when the file cannot be read or no change applies.
        """
        try:
            original = read_source_exact(file_path)
        except OSError as e:
            raise PatchError(f"Could not read {file_path}: {e}") from e

        modified = original
        for change in changes:
            modified = apply_change(modified, change)

        if modified == original:
            raise PatchError(f"None of the {len(changes)} change(s) could be applied to {file_path}")

        diff = make_diff(original, modified, Path(file_path).name, self.patch_format)
        return Patch(
            file_path=str(file_path),
            diff=diff,
            change_id=uuid.uuid4().hex[:12],
            description=description or f"{len(changes)} suggested change(s)",
            format=self.patch_format,
        )

    def validate_changes(self, changes: list[Issue], file_path: str) -> list[str]:
        """Return a list of problems; an empty list means every change is usable."""
        try:
            content = read_source_exact(file_path)
        except OSError:
            return [f"Could not read file: {file_path}"]

        line_count = len(split_lines(content))
        errors = []
        for i, change in enumerate(changes):
            if not change.current_code or not change.suggested_code:
                errors.append(f"Change {i} is missing required fields")
                continue
            if change.current_code not in content and apply_change(content, change) == content:
                errors.append(f"Original code for change {i} not found in file")
                continue
            if change.line_number is not None and not 1 <= change.line_number <= line_count:
                errors.append(f"Invalid line number for change {i}")
        return errors

    def is_safe(self, patch: Patch, target: str | None = None) -> bool:
        """Dry run: True if the patch applies cleanly to target's current content."""
        if patch.format != "unified":
            logger.warning("Only unified diffs can be applied; %s is %s", patch.change_id, patch.format)
            return False
        try:
            apply_unified(read_source_exact(target or patch.file_path), patch.diff)
        except (PatchError, OSError) as e:
            logger.debug("Patch %s is not safe: %s", patch.change_id, e)
            return False
        return True

    def apply_patch(self, patch: Patch, target: str | None = None) -> Backup:
        """Back up target, apply the patch, and restore on any failure.

        On success the patch is marked applied and the backup stays
        registered for rollback. On failure the target is restored byte for
        byte, the patch is marked failed, and PatchError is raised.
        """
        target = target or patch.file_path
        if patch.status != "pending":
            raise PatchError(f"Patch {patch.change_id} is already {patch.status}")
        if patch.format != "unified":
            patch.mark("failed")
            raise PatchError("Only unified diffs can be applied")

        try:
            backup = self.rollback.create_backup(target, patch.change_id)
        except PatchError:
            patch.mark("failed")
            raise
        if not self.rollback.validate_backup(backup):
            self.rollback.discard(patch.change_id)
            patch.mark("failed")
            raise PatchError(f"Backup of {target} is not usable; refusing to patch")

        try:
            patched = apply_unified(read_source_exact(target), patch.diff)
            atomic_write(target, patched)
        except (PatchError, OSError) as e:
            logger.error("Failed to apply patch to %s: %s", target, e)
            self.rollback.restore(backup)
            self.rollback.discard(patch.change_id)
            patch.mark("failed")
            raise PatchError(f"Failed to apply patch to {target}: {e}") from e

        patch.mark("applied")
        logger.info("Applied patch %s to %s", patch.change_id, target)
        return backup

    def save(self, patch: Patch, directory: str) -> Path:
        """Write the diff to <directory>/<file>-<timestamp>.patch."""
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d-%H%M%S")
        path = out_dir / f"{Path(patch.file_path).name}-{stamp}.patch"
        path.write_text(patch.diff, encoding="utf-8", errors="surrogateescape")
        return path
