"""JSON-file vocabulary store used by the importer and the manual save action."""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Any, List, Optional, Protocol, cast

from .types import WordRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the vocabulary store cannot be read or written."""


class VocabularyStore(Protocol):
    def exists(self, text: str, language: str) -> bool:
        ...

    def save(
        self,
        text: str,
        translation: str,
        language: str,
        chapter: Optional[str],
        group: Optional[str],
    ) -> WordRecord:
        ...

    def last_group_for_chapter(self, chapter: str) -> Optional[str]:
        ...

    def list_chapters(self) -> List[str]:
        ...

    def load_all_words(self) -> List[WordRecord]:
        ...


def _clean_optional(value: object) -> Optional[str]:
    return value if isinstance(value, str) else None


class JsonVocabularyStore:
    """Stores words as a JSON list, rewritten atomically on every change."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._words: List[WordRecord] = []
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                raw: Any = json.load(fh)
        except (json.JSONDecodeError, OSError, ValueError) as exc:
            raise StoreError(f"Failed to read vocabulary store {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StoreError(f"Malformed vocabulary store {self._path}")
        entries = raw.get("words", [])
        if not isinstance(entries, list):
            raise StoreError(f"Malformed vocabulary store {self._path}")
        words: List[WordRecord] = []
        for entry in cast(List[Any], entries):
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed word entry in %s: %r", self._path, entry)
                continue
            text = entry.get("text")
            language = entry.get("language")
            if not isinstance(text, str) or not isinstance(language, str):
                logger.warning("Skipping malformed word entry in %s: %r", self._path, entry)
                continue
            created_at = entry.get("created_at")
            translation = entry.get("translation")
            word_id = entry.get("id")
            words.append(
                {
                    "id": word_id if isinstance(word_id, str) else str(uuid.uuid4()),
                    "text": text,
                    "translation": translation if isinstance(translation, str) else "",
                    "language": language,
                    "chapter": _clean_optional(entry.get("chapter")),
                    "group": _clean_optional(entry.get("group")),
                    "created_at": float(created_at) if isinstance(created_at, (int, float)) else 0.0,
                }
            )
        self._words = words

    def _persist(self) -> None:
        tmp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump({"words": self._words}, fh, ensure_ascii=False, indent=2)
            tmp_path.replace(self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to write vocabulary store {self._path}: {exc}") from exc

    def exists(self, text: str, language: str) -> bool:
        needle = text.strip().lower()
        with self._lock:
            return any(
                word["language"] == language and word["text"].lower() == needle
                for word in self._words
            )

    def save(
        self,
        text: str,
        translation: str,
        language: str,
        chapter: Optional[str],
        group: Optional[str],
    ) -> WordRecord:
        record: WordRecord = {
            "id": str(uuid.uuid4()),
            "text": text.strip(),
            "translation": translation.strip(),
            "language": language,
            "chapter": chapter,
            "group": group,
            "created_at": time.time(),
        }
        with self._lock:
            self._words.append(record)
            try:
                self._persist()
            except StoreError:
                self._words.pop()
                raise
        logger.debug("Saved word %r (%s) in chapter %r", record["text"], language, chapter)
        return record

    def last_group_for_chapter(self, chapter: str) -> Optional[str]:
        with self._lock:
            for word in reversed(self._words):
                group = word.get("group")
                if word.get("chapter") == chapter and group and group.strip():
                    return group
        return None

    def list_chapters(self) -> List[str]:
        with self._lock:
            chapters = {
                chapter
                for chapter in (word.get("chapter") for word in self._words)
                if chapter and chapter.strip()
            }
        return sorted(chapters)

    def load_all_words(self) -> List[WordRecord]:
        with self._lock:
            return list(self._words)

    def delete_word(self, word_id: str) -> bool:
        with self._lock:
            remaining = [word for word in self._words if word["id"] != word_id]
            if len(remaining) == len(self._words):
                return False
            previous = self._words
            self._words = remaining
            try:
                self._persist()
            except StoreError:
                self._words = previous
                raise
        return True


__all__ = ["StoreError", "VocabularyStore", "JsonVocabularyStore"]
