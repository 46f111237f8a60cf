"""Shared fixtures for linkshelf tests."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pytest

from linkshelf.classification import ClassificationError
from linkshelf.organization.models import CategorizationResult, Entry


class FakeCategorizer:
    """Categorizer returning canned targets keyed by entry name."""

    def __init__(self, targets: dict[str, list[str]] | None = None, *, fail: bool = False) -> None:
        self.targets = dict(targets or {})
        self.fail = fail
        self.calls: list[list[str]] = []

    def classify(self, entries: Sequence[Entry]) -> list[CategorizationResult]:
        self.calls.append([entry.name for entry in entries])
        if self.fail:
            raise ClassificationError("oracle unavailable")
        return [
            CategorizationResult(source=entry, targets=self.targets[entry.name])
            for entry in entries
            if entry.name in self.targets
        ]


def snapshot_tree(root: Path) -> dict[str, str]:
    """Describe every object under ``root`` (links by value, files by content)."""
    state: dict[str, str] = {}
    if not root.exists():
        return state
    for path in sorted(root.rglob("*")):
        key = path.relative_to(root).as_posix()
        if path.is_symlink():
            state[key] = "link:" + str(path.readlink())
        elif path.is_dir():
            state[key] = "dir"
        else:
            state[key] = "file:" + path.read_text(encoding="utf-8", errors="replace")
    return state


@pytest.fixture
def roots(tmp_path: Path) -> tuple[Path, Path]:
    """Return a populated source root and an empty target root."""
    source = tmp_path / "source"
    target = tmp_path / "target"
    source.mkdir()
    target.mkdir()
    (source / "Nichijou.S01E01.mkv").write_text("video", encoding="utf-8")
    (source / "Blame!").mkdir()
    (source / "Blame!" / "vol1.cbz").write_text("manga", encoding="utf-8")
    return source, target
