import os
import tempfile
from pathlib import Path


def read_source(path: str | os.PathLike) -> str:
    """Read a source file as text, replacing undecodable bytes.

    Line endings are kept as-is (newline="") so a file written back after
    patching keeps its CRLFs.
    """
    with open(path, encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def read_source_exact(path: str | os.PathLike) -> str:
    """Read a source file so that writing it back reproduces every byte.

    Undecodable bytes become lone surrogates (surrogateescape); atomic_write
    turns them back into the original bytes. Use this on any path that
    writes the file again.
    """
    with open(path, encoding="utf-8", errors="surrogateescape", newline="") as f:
        return f.read()


def printable(text: str) -> str:
    """Swap escaped bytes for U+FFFD so text read exactly can go to a terminal."""
    return text.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def split_lines(text: str) -> list[str]:
    """Split on \\n only, keeping the terminator.

    str.splitlines() also breaks on form feeds and other separators that
    can appear inside PHP strings, which would corrupt diffs.
    """
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def atomic_write(path: str | os.PathLike, content: str | bytes) -> None:
    """Replace path's content in one step.

    Writes to a temp file in the same directory and renames it over the
    target, so readers see either the old or the new content. The target's
    permission bits are preserved.
    """
    target = Path(path)
    data = content.encode("utf-8", "surrogateescape") if isinstance(content, str) else content
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if target.exists():
            os.chmod(tmp_name, target.stat().st_mode & 0o7777)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
