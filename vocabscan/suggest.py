"""Debounced background translation suggestions for the word entry form.

The engine owns both input fields of the form. The host loop reports edits
through :meth:`SuggestionEngine.edit` (or the key helpers) and calls
:meth:`SuggestionEngine.tick` at a fixed cadence. Once the most recently
edited field has been quiet for the debounce interval, its text is translated
on a worker thread and the result is written into the other field, unless the
user has moved on in the meantime.

All engine state is touched only by the thread calling ``edit``/``tick``.
Workers get an immutable snapshot and post exactly one
:class:`TranslationOutcome` to a queue that ``tick`` drains without blocking.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .store import StoreError, VocabularyStore
from .translate import TranslationError, Translator, translate_text
from .types import Field

logger = logging.getLogger(__name__)

TRANSLATE_DEBOUNCE_MS = 400
TICK_MS = 100
MANUAL_CHAPTER = "Manual"
MANUAL_GROUP = "Vocabulaire"

Job = Callable[[], None]


class Direction(str, Enum):
    A_TO_B = "A->B"
    B_TO_A = "B->A"

    @classmethod
    def from_source(cls, field: Field) -> "Direction":
        return cls.A_TO_B if field is Field.A else cls.B_TO_A

    @property
    def source(self) -> Field:
        return Field.A if self is Direction.A_TO_B else Field.B

    @property
    def target(self) -> Field:
        return self.source.other


class EngineState(str, Enum):
    IDLE = "idle"
    AWAITING_DEBOUNCE = "awaiting_debounce"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class PendingTranslation:
    direction: Direction
    source_text: str
    started_at: float


@dataclass(frozen=True)
class TranslationOutcome:
    direction: Direction
    source_text: str
    started_at: float
    translation: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.translation is not None


def spawn_thread(job: Job) -> None:
    threading.Thread(target=job, name="vocabscan-suggest", daemon=True).start()


def _translation_job(
    translator: Translator,
    snapshot: PendingTranslation,
    source_lang: str,
    target_lang: str,
    results: "queue.Queue[TranslationOutcome]",
) -> Job:
    def run() -> None:
        try:
            translated = translate_text(translator, snapshot.source_text, source_lang, target_lang)
        except TranslationError as exc:
            outcome = TranslationOutcome(
                snapshot.direction, snapshot.source_text, snapshot.started_at, error=str(exc)
            )
        except Exception as exc:  # noqa: BLE001 - the loop must always hear back
            logger.exception("Unexpected error while translating %r", snapshot.source_text)
            outcome = TranslationOutcome(
                snapshot.direction, snapshot.source_text, snapshot.started_at, error=str(exc)
            )
        else:
            outcome = TranslationOutcome(
                snapshot.direction, snapshot.source_text, snapshot.started_at, translation=translated
            )
        results.put(outcome)

    return run


class SuggestionEngine:
    def __init__(
        self,
        translator: Optional[Translator],
        *,
        languages: Optional[Dict[Field, str]] = None,
        debounce_ms: int = TRANSLATE_DEBOUNCE_MS,
        tick_ms: int = TICK_MS,
        clock: Callable[[], float] = time.monotonic,
        dispatch: Callable[[Job], None] = spawn_thread,
    ) -> None:
        self._translator = translator
        self._languages = languages or {Field.A: "NL", Field.B: "EN"}
        self._debounce = debounce_ms / 1000.0
        self.tick_interval = tick_ms / 1000.0
        self._clock = clock
        self._dispatch = dispatch
        self._results: "queue.Queue[TranslationOutcome]" = queue.Queue()

        self._texts: Dict[Field, str] = {Field.A: "", Field.B: ""}
        self.active_field = Field.A
        self.in_word_entry = True
        self.message: Optional[str] = None

        self._in_flight = False
        self._pending: Optional[PendingTranslation] = None
        self._last_edit_field: Optional[Field] = None
        self._last_edit_at: Dict[Field, float] = {}
        self._last_translated: Dict[Field, str] = {}
        self._last_failed: Dict[Field, str] = {}

    @classmethod
    def from_settings(
        cls, translator: Optional[Translator], settings: Settings, **kwargs: Any
    ) -> "SuggestionEngine":
        return cls(
            translator,
            languages={Field.A: settings.source_lang, Field.B: settings.target_lang},
            debounce_ms=settings.debounce_ms,
            tick_ms=settings.tick_ms,
            **kwargs,
        )

    # -- inspection ---------------------------------------------------------

    def text(self, field: Field) -> str:
        return self._texts[field]

    @property
    def pending(self) -> Optional[PendingTranslation]:
        return self._pending

    @property
    def state(self) -> EngineState:
        if self._in_flight:
            return EngineState.IN_FLIGHT
        field = self._last_edit_field
        if field is not None:
            source = self._texts[field].strip()
            if source and self._last_translated.get(field) != source:
                return EngineState.AWAITING_DEBOUNCE
        return EngineState.IDLE

    # -- events -------------------------------------------------------------

    def edit(self, field: Field, text: str) -> None:
        """Replace the text of ``field`` as typed by the user."""
        self._texts[field] = text
        if not text:
            self._reset_translation_state()
            return
        self._mark_edit(field)

    def type_char(self, ch: str) -> None:
        self.edit(self.active_field, self._texts[self.active_field] + ch)

    def backspace(self) -> None:
        self.edit(self.active_field, self._texts[self.active_field][:-1])

    def switch_field(self) -> None:
        self.active_field = self.active_field.other

    def clear(self) -> None:
        """Start a fresh item: empty both fields and forget all bookkeeping."""
        self._texts = {Field.A: "", Field.B: ""}
        self.message = None
        self._reset_translation_state()

    def tick(self) -> None:
        self._drain_results()
        self._maybe_start()

    def run(self, stop: threading.Event) -> None:
        """Tick every ``tick_interval`` seconds until ``stop`` is set."""
        while not stop.is_set():
            self.tick()
            stop.wait(self.tick_interval)

    # -- internals ----------------------------------------------------------

    def _mark_edit(self, field: Field) -> None:
        self._last_edit_field = field
        self._last_edit_at[field] = self._clock()
        self._last_failed.pop(field, None)

    def _reset_translation_state(self) -> None:
        # A running worker still counts as in flight; its result finds no
        # pending request and is dropped.
        self._pending = None
        self._last_edit_field = None
        self._last_edit_at.clear()
        self._last_translated.clear()
        self._last_failed.clear()

    def _drain_results(self) -> None:
        while True:
            try:
                outcome = self._results.get_nowait()
            except queue.Empty:
                break
            self._apply(outcome)

    def _maybe_start(self) -> None:
        if self._in_flight or self._translator is None or not self.in_word_entry:
            return
        field = self._last_edit_field
        if field is None:
            return
        last_edit_at = self._last_edit_at.get(field)
        if last_edit_at is None:
            return
        now = self._clock()
        if now - last_edit_at < self._debounce:
            return
        source = self._texts[field].strip()
        if not source or self._last_translated.get(field) == source:
            return
        if self._last_failed.get(field) == source:
            return

        direction = Direction.from_source(field)
        snapshot = PendingTranslation(direction, source, now)
        self._pending = snapshot
        self._in_flight = True
        logger.debug("Requesting %s suggestion for %r", direction.value, source)
        self._dispatch(
            _translation_job(
                self._translator,
                snapshot,
                self._languages[direction.source],
                self._languages[direction.target],
                self._results,
            )
        )

    def _apply(self, outcome: TranslationOutcome) -> None:
        pending = self._pending
        if pending is None:
            # Worker orphaned by a reset; it was the one in flight.
            self._in_flight = False
            return
        if pending.direction != outcome.direction or pending.source_text != outcome.source_text:
            logger.debug("Dropping uncorrelated suggestion for %r", outcome.source_text)
            return
        self._pending = None
        self._in_flight = False

        target = outcome.direction.target
        target_edited_at = self._last_edit_at.get(target)
        if target_edited_at is not None and target_edited_at > pending.started_at:
            return
        source = outcome.direction.source
        if self._texts[source].strip() != pending.source_text:
            return

        if outcome.ok:
            self._texts[target] = outcome.translation or ""
            self._last_translated[source] = pending.source_text
        else:
            self._last_failed[source] = pending.source_text
            self.message = f"Translation failed: {outcome.error}"

    # -- manual save --------------------------------------------------------

    def save(
        self,
        store: VocabularyStore,
        chapter: str = MANUAL_CHAPTER,
        group: str = MANUAL_GROUP,
    ) -> bool:
        """Save the active field as a word and the other field as its translation."""

        text = self._texts[self.active_field].strip()
        if not text:
            self.message = "Word cannot be empty"
            return False
        translation = self._texts[self.active_field.other].strip()
        if not translation:
            self.message = "Translation cannot be empty"
            return False

        language = self._languages[self.active_field]
        try:
            if store.exists(text, language):
                self.message = "Word already exists"
                return False
            store.save(text, translation, language, chapter, group)
        except StoreError as exc:
            self.message = f"Failed to save word: {exc}"
            return False
        self.clear()
        self.message = "Word saved"
        return True


__all__ = [
    "TRANSLATE_DEBOUNCE_MS",
    "TICK_MS",
    "Direction",
    "EngineState",
    "PendingTranslation",
    "TranslationOutcome",
    "SuggestionEngine",
    "spawn_thread",
]
