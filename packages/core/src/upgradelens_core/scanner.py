"""File selection and Drupal module discovery.

select_files() decides which files of a module are worth sending to the AI
service. It is deliberately strict about ordering: results are sorted so two
runs over the same tree visit files in the same order, which is what makes a
persisted resume cursor meaningful.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from pathlib import Path

import yaml

from upgradelens_core.exceptions import ScanError
from upgradelens_core.models import ModuleInfo

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = ["*.php", "*.module", "*.inc", "*.install", "*.theme"]
DEFAULT_EXCLUDE = ["*.test.php", "*/tests/*", "*/vendor/*"]
DEFAULT_EXCLUDE_DIRS = ["vendor", "tests", "node_modules"]

# (kind, path relative to the Drupal root)
_EXTENSION_DIRS = (
    ("custom", "modules/custom"),
    ("contrib", "modules/contrib"),
    ("theme", "themes"),
)
_DOCROOT_CANDIDATES = ("", "web", "docroot")

_CONSTRAINT_RE = re.compile(r"^(\^|~|>=)?\s*(\d+)")


def _matches(rel_path: str, patterns: list[str]) -> bool:
    """Return True if rel_path matches any pattern.

    Supports:
    - fnmatch globs on the root-relative path: "src/Plugin/*.php"
    - the same glob against "/<path>" so "*/tests/*" also matches a top-level tests/ dir
    - fnmatch globs on the basename: "*.test.php"
    """
    basename = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch("/" + rel_path, pattern):
            return True
        if fnmatch.fnmatch(basename, pattern):
            return True
    return False


def select_files(
    root: str | os.PathLike,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
    exclude_dirs: list[str] | None = None,
) -> list[str]:
    """Return the sorted list of analysable files under root.

    A file is selected when it matches an include pattern and neither
    matches an exclude pattern nor lives under an excluded directory.
    Exclusion always wins over inclusion.

    Raises ScanError if root does not exist or cannot be read. Unreadable
    subdirectories are skipped with a warning.
    """
    include = DEFAULT_INCLUDE if include is None else include
    exclude = DEFAULT_EXCLUDE if exclude is None else exclude
    denied_dirs = set(DEFAULT_EXCLUDE_DIRS if exclude_dirs is None else exclude_dirs)

    root_path = Path(root)
    if not root_path.is_dir():
        raise ScanError(f"Module directory not found: {root}")
    try:
        with os.scandir(root_path):
            pass
    except OSError as e:
        raise ScanError(f"Module directory is not readable: {root}: {e}") from e

    def _on_error(err: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", err.filename, err.strerror)

    selected: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root_path, onerror=_on_error):
        # Prune in place so os.walk never descends into denied trees.
        dirnames[:] = [d for d in dirnames if d not in denied_dirs]
        rel_dir = Path(dirpath).relative_to(root_path).as_posix()
        for name in filenames:
            rel_path = name if rel_dir == "." else f"{rel_dir}/{name}"
            if not _matches(rel_path, include):
                continue
            if _matches(rel_path, exclude):
                logger.debug("Excluded by pattern: %s", rel_path)
                continue
            selected.append(rel_path)

    return [str(root_path / rel) for rel in sorted(selected)]


def find_drupal_root(site_root: str | os.PathLike) -> Path:
    """Return the directory that holds modules/ and themes/ (handles web/ and docroot/ layouts)."""
    base = Path(site_root)
    for candidate in _DOCROOT_CANDIDATES:
        path = base / candidate if candidate else base
        if (path / "modules").is_dir() or (path / "themes").is_dir():
            return path
    return base


def discover_modules(
    site_root: str | os.PathLike,
    scan_custom: bool = True,
    scan_contrib: bool = True,
    scan_themes: bool = False,
) -> list[ModuleInfo]:
    """Find Drupal extensions by their <name>.info.yml file.

    Only top-level extension directories are returned; submodules are part
    of their parent's file selection.
    """
    drupal_root = find_drupal_root(site_root)
    enabled = {"custom": scan_custom, "contrib": scan_contrib, "theme": scan_themes}

    modules: list[ModuleInfo] = []
    for kind, rel in _EXTENSION_DIRS:
        if not enabled[kind]:
            continue
        ext_dir = drupal_root / rel
        if not ext_dir.is_dir():
            continue
        for child in sorted(ext_dir.iterdir()):
            if not child.is_dir():
                continue
            if kind == "theme" and child.name in ("custom", "contrib"):
                # themes/custom/<name> and themes/contrib/<name> layouts.
                candidates = sorted(c for c in child.iterdir() if c.is_dir())
            else:
                candidates = [child]
            for ext in candidates:
                info_file = ext / f"{ext.name}.info.yml"
                if info_file.is_file():
                    modules.append(
                        ModuleInfo(
                            name=ext.name,
                            path=str(ext),
                            kind=kind,
                            core_version_requirement=_read_core_requirement(info_file),
                        )
                    )
    return modules


def _read_core_requirement(info_file: Path) -> str:
    try:
        info = yaml.safe_load(info_file.read_text(encoding="utf-8", errors="replace")) or {}
    except yaml.YAMLError as e:
        logger.warning("Could not parse %s: %s", info_file, e)
        return ""
    if not isinstance(info, dict):
        return ""
    return str(info.get("core_version_requirement") or info.get("core") or "")


def is_compatible(requirement: str, target_major: int | str) -> bool:
    """Return True if a core_version_requirement string admits target_major.

    Understands the constraint forms Drupal info files use: ``^10``,
    ``~10.1``, ``>=9.4`` and ``||`` alternatives.
    """
    target = int(str(target_major).split(".")[0])
    for part in requirement.split("||"):
        match = _CONSTRAINT_RE.match(part.strip())
        if not match:
            continue
        operator, major = match.group(1) or "^", int(match.group(2))
        if operator == ">=" and major <= target:
            return True
        if operator in ("^", "~") and major == target:
            return True
    return False
