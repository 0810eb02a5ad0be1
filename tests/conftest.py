"""Shared fakes for translator and OCR collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest

from vocabscan.translate import TranslationError
from vocabscan.types import OCRLine


class FakeTranslator:
    """Records batches and answers with ``"<lang>:<text>"`` translations."""

    def __init__(self, fail_on_call: Optional[int] = None, drop_last: bool = False) -> None:
        self.calls: List[List[str]] = []
        self.fail_on_call = fail_on_call
        self.drop_last = drop_last

    def translate_batch(self, texts: Sequence[str], source_lang: str, target_lang: str) -> List[str]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise TranslationError("service unavailable")
        translations = [f"{target_lang.lower()}:{text}" for text in texts]
        if self.drop_last:
            translations = translations[:-1]
        return translations


class FakeOCR:
    def __init__(self, lines: List[OCRLine]) -> None:
        self.lines = lines
        self.paths: List[Path] = []

    def recognize(self, image_path: Path) -> List[OCRLine]:
        self.paths.append(image_path)
        return list(self.lines)


def make_line(text: str, x: float, y_top: float, h: float = 0.03) -> OCRLine:
    return {
        "text": text,
        "bbox": {"x": x, "y": 1.0 - y_top - h, "w": 0.2, "h": h},
        "confidence": 0.95,
    }


@pytest.fixture
def make_translator() -> Callable[..., FakeTranslator]:
    return FakeTranslator


@pytest.fixture
def make_ocr() -> Callable[[List[OCRLine]], FakeOCR]:
    return FakeOCR


@pytest.fixture
def page_lines() -> List[OCRLine]:
    """A two-column page with a chapter title, a page number and two headings."""

    return [
        make_line("Hoofdstuk 4", 0.1, 0.0, h=0.06),
        make_line("Dieren", 0.1, 0.05, h=0.05),
        make_line("de kat. de katten", 0.1, 0.12),
        make_line("- de hond", 0.1, 0.18),
        make_line("Kleuren", 0.55, 0.05, h=0.05),
        make_line("rood", 0.56, 0.12),
        make_line("blauw", 0.55, 0.18),
        make_line("42", 0.9, 0.95),
    ]


@pytest.fixture
def make_line_factory() -> Callable[..., OCRLine]:
    return make_line
