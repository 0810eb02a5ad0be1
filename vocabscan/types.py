"""Typed structures shared by the import and suggestion modules."""

from __future__ import annotations

from enum import Enum
from typing import TypedDict


class OCRBox(TypedDict):
    """Normalized bounding box with a bottom-left origin."""

    x: float
    y: float
    w: float
    h: float


class OCRLine(TypedDict):
    """Single recognized text line as produced by the OCR helper."""

    text: str
    bbox: OCRBox
    confidence: float


class LineEntry(TypedDict):
    """OCR line that survived filtering, with a top-origin vertical position."""

    text: str
    x: float
    y_top: float
    height: float


class ImportItem(TypedDict):
    """Vocabulary entry tagged with the heading it was found under."""

    text: str
    group: str


class WordRecordRequired(TypedDict):
    id: str
    text: str
    translation: str
    language: str
    created_at: float


class WordRecord(WordRecordRequired, total=False):
    """Persisted vocabulary word with optional chapter/group metadata."""

    chapter: str | None
    group: str | None


class Field(str, Enum):
    """Input field of the bilingual word entry form."""

    A = "A"
    B = "B"

    @property
    def other(self) -> "Field":
        return Field.B if self is Field.A else Field.A


__all__ = [
    "OCRBox",
    "OCRLine",
    "LineEntry",
    "ImportItem",
    "WordRecord",
    "Field",
]
