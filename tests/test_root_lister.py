"""Tests for listing the source root."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from linkshelf.ingestion import RootLister
from linkshelf.organization.models import EntryKind


def test_lists_immediate_children_only(tmp_path: Path) -> None:
    (tmp_path / "movie.mkv").write_text("x", encoding="utf-8")
    (tmp_path / "Series").mkdir()
    (tmp_path / "Series" / "episode.mkv").write_text("x", encoding="utf-8")

    entries = RootLister().list(tmp_path)

    assert [(entry.name, entry.kind) for entry in entries] == [
        ("Series", EntryKind.FOLDER),
        ("movie.mkv", EntryKind.FILE),
    ]


def test_symlinks_are_not_followed(tmp_path: Path) -> None:
    real = tmp_path / "real.txt"
    real.write_text("x", encoding="utf-8")
    root = tmp_path / "root"
    root.mkdir()
    os.symlink(real, root / "link-to-file")

    first = RootLister().list(root)
    second = RootLister().list(root)

    assert first == second
    assert first[0].kind is EntryKind.FOLDER


def test_hidden_entries_can_be_excluded(tmp_path: Path) -> None:
    (tmp_path / ".partial").write_text("x", encoding="utf-8")
    (tmp_path / "Album").mkdir()

    assert [entry.name for entry in RootLister().list(tmp_path)] == [".partial", "Album"]
    assert [entry.name for entry in RootLister(include_hidden=False).list(tmp_path)] == ["Album"]


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        RootLister().list(tmp_path / "missing")
