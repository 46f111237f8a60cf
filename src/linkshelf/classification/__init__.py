"""Categorization oracle package."""

from .engine import BASE_PROMPT, Categorizer, DSPyCategorizer
from .models import ClassificationError, parse_categorizations

__all__ = [
    "BASE_PROMPT",
    "Categorizer",
    "DSPyCategorizer",
    "ClassificationError",
    "parse_categorizations",
]
