"""Reconciliation passes and their scheduler."""

from .scheduler import RunScheduler
from .service import ReclassifyPolicy, ReconcileService

__all__ = ["ReconcileService", "ReclassifyPolicy", "RunScheduler"]
