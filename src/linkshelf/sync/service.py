"""Reconciliation pass orchestration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Literal, Sequence

from linkshelf.classification import Categorizer
from linkshelf.ingestion.discovery import RootLister
from linkshelf.organization.cleaner import TreeCleaner
from linkshelf.organization.executor import SymlinkReconciler
from linkshelf.organization.models import Entry, LinkAction, LinkOutcome, PassResult
from linkshelf.state import LedgerError, LedgerStore

LOGGER = logging.getLogger(__name__)

ReclassifyPolicy = Literal["all", "new"]


class ReconcileService:
    """Drive reconciliation passes: list, classify, clean, apply, record.

    The service holds only its collaborators; nothing carries over from one
    pass to the next except what the ledger and the target tree persist.
    """

    def __init__(
        self,
        *,
        source_root: Path,
        target_root: Path,
        categorizer: Categorizer,
        ledger: LedgerStore,
        allowed_roots: Iterable[str],
        dry_run: bool = True,
        reclassify: ReclassifyPolicy = "all",
        lister: RootLister | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            source_root: Flat directory whose entries are categorized.
            target_root: Directory that receives the symlink tree.
            categorizer: Oracle that assigns target paths to entries.
            ledger: Durable record of entries already processed.
            allowed_roots: Category folders every target must start with.
            dry_run: When True, log filesystem operations without performing them.
            reclassify: ``"all"`` re-derives the whole tree whenever anything is
                new; ``"new"`` classifies only unprocessed entries and patches
                the tree without cleaning it.
            lister: Optional root lister override.
        """
        self._source_root = source_root.expanduser().resolve()
        self._target_root = target_root.expanduser().resolve()
        self._categorizer = categorizer
        self._ledger = ledger
        self._allowed_roots = list(allowed_roots)
        self._dry_run = dry_run
        self._reclassify = reclassify
        self._lister = lister or RootLister()

    @property
    def dry_run(self) -> bool:
        """Return whether passes avoid filesystem mutations."""
        return self._dry_run

    def run_pass(self) -> PassResult:
        """Execute one reconciliation pass.

        Listing and categorization failures propagate before the target tree
        or the ledger is touched. Per-item failures are logged and collected
        in the result.

        Returns:
            PassResult: Summary of the pass.

        Raises:
            OSError: If the source root cannot be listed.
            ClassificationError: If the categorization oracle fails.
        """
        LOGGER.info("Starting reconciliation pass for %s", self._source_root)
        result = PassResult(dry_run=self._dry_run)

        entries = self._lister.list(self._source_root)
        result.listed = [entry.name for entry in entries]
        unprocessed = [entry for entry in entries if not self._is_processed(entry)]

        if not unprocessed:
            LOGGER.info("No new items to process.")
            result.skipped = True
            return result

        LOGGER.info("Found %d new items to process.", len(unprocessed))
        batch = entries if self._reclassify == "all" else unprocessed
        result.classified = [entry.name for entry in batch]
        categorizations = self._categorizer.classify(batch)

        if self._reclassify == "all":
            cleaner = TreeCleaner(dry_run=self._dry_run)
            result.cleanup = cleaner.clean(self._target_root)

        reconciler = SymlinkReconciler(
            self._target_root,
            dry_run=self._dry_run,
            pending_removal=result.cleanup.removed_links if result.cleanup else (),
        )
        for categorization in categorizations:
            source_path = self._source_root / categorization.source.name
            for target in categorization.link_paths():
                outcome = reconciler.ensure_link(source_path, target, self._allowed_roots)
                result.links.append(
                    LinkAction(entry=categorization.source.name, target=target, outcome=outcome)
                )
                if outcome is LinkOutcome.FAILED:
                    result.errors.append(f"{target}: symlink operation failed")

        self._record(entries, result)
        LOGGER.info("File organization complete: %s", result.counts())
        return result

    def _is_processed(self, entry: Entry) -> bool:
        try:
            return self._ledger.is_processed(entry.name)
        except LedgerError as exc:
            LOGGER.error("Unable to read ledger for %s; treating it as new: %s", entry.name, exc)
            return False

    def _record(self, entries: Sequence[Entry], result: PassResult) -> None:
        """Mark every listed entry processed, including ones the oracle omitted."""
        if self._dry_run:
            LOGGER.info("[dry-run] Not recording %d items in the ledger", len(entries))
            return
        for entry in entries:
            try:
                self._ledger.mark_processed(entry.name)
            except LedgerError as exc:
                LOGGER.error("Unable to record %s as processed: %s", entry.name, exc)
                result.errors.append(f"{entry.name}: {exc}")
                continue
            result.marked.append(entry.name)


__all__ = ["ReconcileService", "ReclassifyPolicy"]
