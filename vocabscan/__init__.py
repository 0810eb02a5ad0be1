"""Vocabulary page import and live translation suggestions."""

from .importer import ImportFailed, ImportOptions, ImportResult, import_from_image, import_lines
from .layout import HeadingRule, parse_grouped_items
from .suggest import SuggestionEngine

__all__ = [
    "HeadingRule",
    "ImportFailed",
    "ImportOptions",
    "ImportResult",
    "SuggestionEngine",
    "import_from_image",
    "import_lines",
    "parse_grouped_items",
]
