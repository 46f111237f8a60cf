"""Creation and repair of categorized symlinks."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from .models import LinkOutcome

LOGGER = logging.getLogger(__name__)


class SymlinkReconciler:
    """Ensure a symlink under the target root points at a source path.

    Existing objects fall into one of four states: absent, a link already
    pointing at the source, a stale link pointing elsewhere, or a foreign
    object. Only the first three are ever written to.

    In dry-run mode, links listed in ``pending_removal`` (the ones a dry-run
    cleanup reported) count as absent, so the plan matches what an applied
    pass would do.
    """

    def __init__(
        self,
        target_root: Path,
        *,
        dry_run: bool = False,
        pending_removal: Iterable[Path] = (),
    ) -> None:
        self._target_root = target_root
        self.dry_run = dry_run
        self._pending_removal = frozenset(pending_removal) if dry_run else frozenset()

    @property
    def target_root(self) -> Path:
        """Return the directory that receives the symlinks."""
        return self._target_root

    def ensure_link(
        self,
        source_path: Path,
        target: str,
        allowed_roots: Iterable[str],
    ) -> LinkOutcome:
        """Make ``target`` (relative to the target root) a symlink to ``source_path``.

        Args:
            source_path: Absolute path the symlink should point to.
            target: Slash-separated symlink path relative to the target root.
            allowed_roots: Category folders the first path segment must match.

        Returns:
            LinkOutcome: What was done (or would be done in dry-run mode).
        """
        relative = self._admissible(target, allowed_roots)
        if relative is None:
            return LinkOutcome.REJECTED

        link_path = self._target_root.joinpath(*relative.parts)
        link_value = str(source_path)

        try:
            blocker = self._blocking_parent(relative)
            if blocker is not None:
                LOGGER.warning(
                    "Cannot create symlink %s: parent %s is not a real directory",
                    link_path,
                    blocker,
                )
                return LinkOutcome.CONFLICT
            current = self._read_existing(link_path)
        except OSError as exc:
            LOGGER.error("Unable to inspect %s: %s", link_path, exc)
            return LinkOutcome.FAILED

        if current is _FOREIGN:
            LOGGER.warning(
                "Cannot create symlink: %s already exists and is not a symlink", link_path
            )
            return LinkOutcome.CONFLICT
        if current == link_value:
            return LinkOutcome.UNCHANGED

        if self.dry_run:
            verb = "replace" if current is not None else "create"
            LOGGER.info("[dry-run] Would %s symlink %s -> %s", verb, link_path, link_value)
            return LinkOutcome.PLANNED

        try:
            link_path.parent.mkdir(parents=True, exist_ok=True)
            if current is not None:
                link_path.unlink()
            os.symlink(link_value, link_path)
        except OSError as exc:
            LOGGER.error("Error creating symlink %s: %s", link_path, exc)
            return LinkOutcome.FAILED

        if current is not None:
            LOGGER.info("Replaced symlink: %s -> %s (was %s)", link_path, link_value, current)
            return LinkOutcome.REPLACED
        LOGGER.info("Created symlink: %s -> %s", link_path, link_value)
        return LinkOutcome.CREATED

    def _admissible(self, target: str, allowed_roots: Iterable[str]) -> Optional[PurePosixPath]:
        """Return the normalized relative path, or None when it may not be written."""
        relative = PurePosixPath(target.strip())
        parts = relative.parts
        if relative.is_absolute() or not parts or ".." in parts:
            LOGGER.info("Skipping %s because it is not a relative path inside the target", target)
            return None
        if parts[0] not in set(allowed_roots):
            LOGGER.info("Skipping %s because it's not in the allowed root folders", target)
            return None
        if len(parts) < 2:
            LOGGER.info("Skipping %s because it would replace a root folder", target)
            return None
        return relative

    def _blocking_parent(self, relative: PurePosixPath) -> Optional[Path]:
        """Return the first parent under the root that is a symlink or a non-directory."""
        current = self._target_root
        for part in relative.parts[:-1]:
            current = current / part
            if current.is_symlink():
                return None if current in self._pending_removal else current
            if not os.path.lexists(current):
                return None
            if not current.is_dir():
                return current
        return None

    def _read_existing(self, link_path: Path) -> object:
        """Return the link value at ``link_path``, None if absent, or ``_FOREIGN``.

        A link pending removal, or anything beneath one, counts as absent.
        """
        if self._pending_removal and not self._pending_removal.isdisjoint(
            (link_path, *link_path.parents)
        ):
            return None
        # lexists() and islink() do not follow the final symlink
        if not os.path.lexists(link_path):
            return None
        if not link_path.is_symlink():
            return _FOREIGN
        return os.readlink(link_path)


_FOREIGN = object()


__all__ = ["SymlinkReconciler"]
