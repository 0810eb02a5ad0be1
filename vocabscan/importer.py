"""Import a photographed vocabulary page into the vocabulary store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from .layout import COLUMN_THRESHOLD, DEFAULT_HEADING_RULE, HeadingRule, parse_grouped_items
from .ocr import OCRError, OCRProvider, run_ocr
from .store import StoreError, VocabularyStore
from .translate import DEFAULT_CHUNK_SIZE, TranslationError, Translator, iter_translated_chunks
from .types import ImportItem, OCRLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportOptions:
    """Knobs for one import run.

    Attributes:
        source_lang: Language of the photographed words.
        target_lang: Language the words are translated into.
        chunk_size: Maximum number of texts per translation request.
        column_threshold: Horizontal distance for joining a column.
        heading_rule: Typographic rule for section headings.
        buffered: Translate every chunk before saving anything, so a failed
            translation leaves the store untouched.
    """

    source_lang: str = "NL"
    target_lang: str = "EN"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    column_threshold: float = COLUMN_THRESHOLD
    heading_rule: HeadingRule = DEFAULT_HEADING_RULE
    buffered: bool = False


@dataclass(frozen=True)
class ImportResult:
    inserted: int
    skipped: int


class ImportFailed(Exception):
    """Raised when an import stops early; carries what was committed before."""

    def __init__(self, message: str, result: ImportResult) -> None:
        super().__init__(message)
        self.result = result


def _save_pairs(
    pairs: Iterable[Tuple[ImportItem, str]],
    store: VocabularyStore,
    chapter: str,
    source_lang: str,
    counts: List[int],
) -> None:
    for item, translation in pairs:
        if store.exists(item["text"], source_lang):
            counts[1] += 1
            continue
        store.save(item["text"], translation, source_lang, chapter, item["group"])
        counts[0] += 1


def import_items(
    items: Sequence[ImportItem],
    store: VocabularyStore,
    translator: Translator,
    chapter: str,
    options: ImportOptions = ImportOptions(),
) -> ImportResult:
    """Translate ``items`` chunk by chunk and save the ones not yet stored.

    Duplicates are matched case-insensitively on ``(text, source_lang)`` and
    counted as skipped. When a chunk fails, the remaining chunks are not
    attempted and :class:`ImportFailed` reports the rows saved so far.
    """

    counts = [0, 0]
    chunks = iter_translated_chunks(
        items,
        translator,
        options.source_lang,
        options.target_lang,
        chunk_size=options.chunk_size,
    )
    try:
        if options.buffered:
            pairs: List[Tuple[ImportItem, str]] = []
            for chunk, translations in chunks:
                pairs.extend(zip(chunk, translations))
            _save_pairs(pairs, store, chapter, options.source_lang, counts)
        else:
            for chunk, translations in chunks:
                _save_pairs(zip(chunk, translations), store, chapter, options.source_lang, counts)
    except TranslationError as exc:
        result = ImportResult(inserted=counts[0], skipped=counts[1])
        logger.error("Import into chapter %r aborted after %s inserts: %s", chapter, result.inserted, exc)
        raise ImportFailed(f"Translation failed: {exc}", result) from exc
    except StoreError as exc:
        result = ImportResult(inserted=counts[0], skipped=counts[1])
        logger.error("Import into chapter %r aborted after %s inserts: %s", chapter, result.inserted, exc)
        raise ImportFailed(f"Failed to save word: {exc}", result) from exc

    result = ImportResult(inserted=counts[0], skipped=counts[1])
    if result.skipped:
        logger.info("Skipped %s duplicate words", result.skipped)
    logger.info("Imported %s words into chapter %r", result.inserted, chapter)
    return result


def preview_lines(
    lines: Iterable[OCRLine],
    store: VocabularyStore,
    chapter: str,
    options: ImportOptions = ImportOptions(),
) -> List[ImportItem]:
    """Group OCR lines, continuing from the chapter's last stored group."""

    try:
        initial_group = store.last_group_for_chapter(chapter)
    except StoreError as exc:
        raise ImportFailed(f"Failed to read chapter groups: {exc}", ImportResult(0, 0)) from exc
    return parse_grouped_items(
        lines,
        initial_group,
        threshold=options.column_threshold,
        rule=options.heading_rule,
    )


def import_lines(
    lines: Iterable[OCRLine],
    store: VocabularyStore,
    translator: Translator,
    chapter: str,
    options: ImportOptions = ImportOptions(),
) -> ImportResult:
    items = preview_lines(lines, store, chapter, options)
    if not items:
        return ImportResult(inserted=0, skipped=0)
    return import_items(items, store, translator, chapter, options)


def recognize_page(image_path: Path, ocr: OCRProvider) -> List[OCRLine]:
    try:
        return run_ocr(image_path, ocr)
    except OCRError as exc:
        logger.error("OCR failed for %s: %s", image_path, exc)
        raise ImportFailed(f"OCR failed: {exc}", ImportResult(0, 0)) from exc


def import_from_image(
    image_path: Path,
    store: VocabularyStore,
    translator: Translator,
    ocr: OCRProvider,
    chapter: str,
    options: ImportOptions = ImportOptions(),
) -> ImportResult:
    """Run OCR on ``image_path`` and import the recognized words."""

    chapter = chapter.strip()
    if not chapter:
        raise ValueError("chapter must not be empty")
    lines = recognize_page(image_path, ocr)
    return import_lines(lines, store, translator, chapter, options)


def preview_image(
    image_path: Path,
    store: VocabularyStore,
    ocr: OCRProvider,
    chapter: str,
    options: ImportOptions = ImportOptions(),
) -> List[ImportItem]:
    return preview_lines(recognize_page(image_path, ocr), store, chapter.strip(), options)


__all__ = [
    "ImportOptions",
    "ImportResult",
    "ImportFailed",
    "import_items",
    "import_lines",
    "import_from_image",
    "preview_lines",
    "preview_image",
]
