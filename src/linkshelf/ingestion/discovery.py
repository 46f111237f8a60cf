"""Source root discovery utilities."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from linkshelf.organization.models import Entry, EntryKind

LOGGER = logging.getLogger(__name__)


class RootLister:
    """List the immediate children of a flat source root."""

    def __init__(self, *, include_hidden: bool = True) -> None:
        self.include_hidden = include_hidden

    def list(self, root: Path) -> list[Entry]:
        """Return one entry per immediate child of ``root``, sorted by name.

        Symlinks are never followed: only a regular file is a ``FILE``, every
        other child (directories, symlinks, special files) is a ``FOLDER``.

        Raises:
            OSError: If the root cannot be read.
        """
        entries: list[Entry] = []
        with os.scandir(root) as iterator:
            for dir_entry in iterator:
                if not self.include_hidden and dir_entry.name.startswith("."):
                    continue
                entries.append(Entry(name=dir_entry.name, kind=self._kind(dir_entry)))
        entries.sort(key=lambda entry: entry.name)
        LOGGER.debug("Listed %d entries under %s", len(entries), root)
        return entries

    def _kind(self, dir_entry: os.DirEntry[str]) -> EntryKind:
        try:
            mode = dir_entry.stat(follow_symlinks=False).st_mode
        except OSError:
            return EntryKind.FOLDER
        return EntryKind.FILE if stat.S_ISREG(mode) else EntryKind.FOLDER
