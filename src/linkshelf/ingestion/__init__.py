"""Source listing package."""

from .discovery import RootLister

__all__ = ["RootLister"]
