"""Tests for file helpers."""

import os
import stat

import pytest

from upgradelens_core.utils.files import atomic_write, printable, read_source, read_source_exact, split_lines


@pytest.mark.parametrize(
    "text,expected",
    [
        ("", []),
        ("a", ["a"]),
        ("a\n", ["a\n"]),
        ("a\r\nb", ["a\r\n", "b"]),
        ("a\fb\n", ["a\fb\n"]),
    ],
)
def test_split_lines(text, expected):
    assert split_lines(text) == expected


def test_read_source_keeps_crlf_and_replaces_bad_bytes(tmp_path):
    path = tmp_path / "a.php"
    path.write_bytes(b"<?php\r\necho '\xff';\r\n")
    content = read_source(path)
    assert content.startswith("<?php\r\n")
    assert "�" in content


def test_atomic_write_replaces_content_and_keeps_mode(tmp_path):
    path = tmp_path / "a.php"
    path.write_text("old")
    os.chmod(path, 0o640)
    atomic_write(path, "new")
    assert path.read_text() == "new"
    assert stat.S_IMODE(path.stat().st_mode) == 0o640
    assert os.listdir(tmp_path) == ["a.php"]


def test_atomic_write_bytes(tmp_path):
    path = tmp_path / "b.bin"
    atomic_write(path, b"\x00\x01")
    assert path.read_bytes() == b"\x00\x01"


def test_read_source_exact_round_trips_undecodable_bytes(tmp_path):
    raw = b"<?php\r\n// Caf\xe9\r\n"
    path = tmp_path / "a.php"
    path.write_bytes(raw)
    atomic_write(path, read_source_exact(path))
    assert path.read_bytes() == raw


def test_printable_replaces_escaped_bytes():
    assert printable("Caf\udce9") == "Caf�"
