"""Symlink reconciliation primitives."""

from .cleaner import TreeCleaner
from .executor import SymlinkReconciler
from .models import (
    CategorizationResult,
    CleanupReport,
    Entry,
    EntryKind,
    LinkAction,
    LinkOutcome,
    PassResult,
)

__all__ = [
    "TreeCleaner",
    "SymlinkReconciler",
    "CategorizationResult",
    "CleanupReport",
    "Entry",
    "EntryKind",
    "LinkAction",
    "LinkOutcome",
    "PassResult",
]
