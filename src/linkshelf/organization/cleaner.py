"""Removal of symlinks and empty directories from the target tree."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .models import CleanupReport

LOGGER = logging.getLogger(__name__)


class TreeCleaner:
    """Delete every symlink under a root and prune directories left empty.

    The walk is post-order: children are handled before their parent's
    emptiness is decided, so a chain of directories that only held links
    collapses in a single walk. Regular files are never touched, and a
    directory holding one is kept.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    def clean(self, root: Path) -> CleanupReport:
        """Clean ``root`` and return what was removed.

        ``root`` itself is removed when it ends up empty.

        Args:
            root: Directory to clean.

        Returns:
            CleanupReport: Removed links, removed directories, and logged errors.
        """
        report = CleanupReport()
        if not root.is_dir() or root.is_symlink():
            LOGGER.warning("Skipping cleanup of %s: not a directory", root)
            return report
        self._visit(root, report)
        LOGGER.info(
            "Cleanup of %s %s %d symlinks and %d empty directories",
            root,
            "would remove" if self.dry_run else "removed",
            len(report.removed_links),
            len(report.removed_dirs),
        )
        return report

    def _visit(self, directory: Path, report: CleanupReport) -> bool:
        """Clean ``directory`` and return whether it is now (or would be) gone."""
        try:
            with os.scandir(directory) as iterator:
                children = list(iterator)
        except OSError as exc:
            self._record_error(report, f"Unable to list {directory}: {exc}")
            return False

        remaining = len(children)
        for child in children:
            path = Path(child.path)
            if child.is_symlink():
                if self._remove_link(path, report):
                    remaining -= 1
            elif child.is_dir(follow_symlinks=False):
                if self._visit(path, report):
                    remaining -= 1

        if remaining:
            return False
        return self._remove_dir(directory, report)

    def _remove_link(self, path: Path, report: CleanupReport) -> bool:
        if self.dry_run:
            LOGGER.info("[dry-run] Would remove symlink %s", path)
            report.removed_links.append(path)
            return True
        try:
            path.unlink()
        except OSError as exc:
            self._record_error(report, f"Unable to remove symlink {path}: {exc}")
            return False
        LOGGER.debug("Removed symlink %s", path)
        report.removed_links.append(path)
        return True

    def _remove_dir(self, path: Path, report: CleanupReport) -> bool:
        if self.dry_run:
            LOGGER.info("[dry-run] Would remove empty directory %s", path)
            report.removed_dirs.append(path)
            return True
        try:
            path.rmdir()
        except OSError as exc:
            self._record_error(report, f"Unable to remove directory {path}: {exc}")
            return False
        LOGGER.debug("Removed empty directory %s", path)
        report.removed_dirs.append(path)
        return True

    def _record_error(self, report: CleanupReport, message: str) -> None:
        LOGGER.error(message)
        report.errors.append(message)


__all__ = ["TreeCleaner"]
