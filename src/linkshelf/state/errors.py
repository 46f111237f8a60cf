"""State management errors."""


class StateError(Exception):
    """Base exception for persisted state operations."""


class LedgerError(StateError):
    """Raised when the processed-item ledger cannot be read or written."""
