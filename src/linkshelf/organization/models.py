"""Data models shared by the reconciliation engine."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class EntryKind(str, Enum):
    """Kind of a top-level source entry."""

    FILE = "file"
    FOLDER = "folder"


class Entry(BaseModel):
    """One immediate child of the source root.

    Attributes:
        name: Entry name, unique within the source root.
        kind: Whether the entry is a file or a folder.
    """

    name: str
    kind: EntryKind


class CategorizationResult(BaseModel):
    """Target paths assigned to one entry by the categorization oracle.

    Attributes:
        source: Entry being categorized.
        targets: Slash-separated paths relative to the target root. For files
            each path names the containing directory; for folders it is the
            final symlink path.
    """

    source: Entry
    targets: List[str] = Field(default_factory=list)

    def link_paths(self) -> List[str]:
        """Return the final symlink paths, appending the name for files."""
        if self.source.kind is EntryKind.FOLDER:
            return list(self.targets)
        return [f"{target.rstrip('/')}/{self.source.name}" for target in self.targets]


class LinkOutcome(str, Enum):
    """Result of reconciling one symlink target."""

    CREATED = "created"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"
    PLANNED = "planned"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    FAILED = "failed"


class LinkAction(BaseModel):
    """Record of one reconciliation attempt.

    Attributes:
        entry: Name of the source entry.
        target: Relative symlink path that was requested.
        outcome: What the reconciler did for this target.
    """

    entry: str
    target: str
    outcome: LinkOutcome


class CleanupReport(BaseModel):
    """Summary of a tree cleaning walk.

    Attributes:
        removed_links: Symlinks deleted (or that would be, in dry-run mode).
        removed_dirs: Empty directories pruned.
        errors: Deletion failures that were logged and skipped.
    """

    removed_links: List[Path] = Field(default_factory=list)
    removed_dirs: List[Path] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class PassResult(BaseModel):
    """Outcome of one reconciliation pass.

    Attributes:
        listed: Names of the entries found in the source root.
        classified: Names sent to the categorization oracle.
        skipped: True when the pass short-circuited because nothing was new.
        dry_run: Whether the pass ran without mutating the filesystem.
        cleanup: Tree cleaner summary, if the cleaner ran.
        links: Per-target reconciliation records.
        marked: Names recorded in the ledger at the end of the pass.
        errors: Recoverable per-item errors.
    """

    listed: List[str] = Field(default_factory=list)
    classified: List[str] = Field(default_factory=list)
    skipped: bool = False
    dry_run: bool = True
    cleanup: Optional[CleanupReport] = None
    links: List[LinkAction] = Field(default_factory=list)
    marked: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        """Return summary metrics for CLI output."""
        metrics: Dict[str, int] = {
            "listed": len(self.listed),
            "classified": len(self.classified),
        }
        for outcome in LinkOutcome:
            metrics[outcome.value] = sum(1 for link in self.links if link.outcome is outcome)
        metrics["links_removed"] = len(self.cleanup.removed_links) if self.cleanup else 0
        metrics["dirs_removed"] = len(self.cleanup.removed_dirs) if self.cleanup else 0
        metrics["marked"] = len(self.marked)
        metrics["errors"] = len(self.errors) + (len(self.cleanup.errors) if self.cleanup else 0)
        return metrics


__all__ = [
    "EntryKind",
    "Entry",
    "CategorizationResult",
    "LinkOutcome",
    "LinkAction",
    "CleanupReport",
    "PassResult",
]
