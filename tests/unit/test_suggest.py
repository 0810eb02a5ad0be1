"""Unit tests for the debounced live suggestion engine."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Sequence

import pytest

from vocabscan.config import Settings
from vocabscan.store import JsonVocabularyStore
from vocabscan.suggest import Direction, EngineState, SuggestionEngine, TranslationOutcome
from vocabscan.translate import TranslationError
from vocabscan.types import Field


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def at_ms(self, ms: float) -> None:
        self.now = ms / 1000.0


class _Dispatcher:
    """Holds background jobs until the test decides to run them."""

    def __init__(self) -> None:
        self.jobs: List[Callable[[], None]] = []

    def __call__(self, job: Callable[[], None]) -> None:
        self.jobs.append(job)

    def run_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for job in jobs:
            job()


class _DictTranslator:
    def __init__(self, table: dict[str, str]) -> None:
        self.table = table
        self.requests: List[tuple[str, str, str]] = []

    def translate_batch(self, texts: Sequence[str], source_lang: str, target_lang: str) -> List[str]:
        self.requests.extend((text, source_lang, target_lang) for text in texts)
        return [self.table.get(text, text.upper()) for text in texts]


class _FailingTranslator:
    def translate_batch(self, texts: Sequence[str], source_lang: str, target_lang: str) -> List[str]:
        raise TranslationError("Translation API error (456): quota exceeded")


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def dispatcher() -> _Dispatcher:
    return _Dispatcher()


@pytest.fixture
def translator() -> _DictTranslator:
    return _DictTranslator({"huis": "house", "house": "huis", "kat": "cat"})


@pytest.fixture
def engine(translator, clock, dispatcher) -> SuggestionEngine:
    return SuggestionEngine(translator, clock=clock, dispatch=dispatcher)


def test_debounced_request_fills_other_field(engine, clock, dispatcher, translator) -> None:
    """Edit at 0ms, tick at 350ms does nothing, tick at 450ms starts the request."""

    engine.edit(Field.A, "huis")
    assert engine.state is EngineState.AWAITING_DEBOUNCE

    clock.at_ms(350)
    engine.tick()
    assert dispatcher.jobs == []

    clock.at_ms(450)
    engine.tick()
    assert len(dispatcher.jobs) == 1
    assert engine.state is EngineState.IN_FLIGHT
    assert engine.pending is not None
    assert (engine.pending.direction, engine.pending.source_text) == (Direction.A_TO_B, "huis")

    dispatcher.run_all()
    clock.at_ms(550)
    engine.tick()

    assert engine.text(Field.B) == "house"
    assert engine.state is EngineState.IDLE
    assert translator.requests == [("huis", "NL", "EN")]


def test_rapid_edits_produce_single_request(engine, clock, dispatcher, translator) -> None:
    for idx, text in enumerate(["h", "hu", "hui", "huis"]):
        clock.at_ms(idx * 100)
        engine.edit(Field.A, text)
        engine.tick()

    assert dispatcher.jobs == []
    clock.at_ms(300 + 450)
    engine.tick()
    engine.tick()
    assert len(dispatcher.jobs) == 1
    dispatcher.run_all()
    engine.tick()
    engine.tick()

    assert translator.requests == [("huis", "NL", "EN")]


def test_unchanged_input_is_not_translated_again(engine, clock, dispatcher, translator) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()
    dispatcher.run_all()
    engine.tick()

    engine.edit(Field.A, "huis ")
    clock.at_ms(1000)
    engine.tick()

    assert dispatcher.jobs == []
    assert translator.requests == [("huis", "NL", "EN")]


def test_whitespace_only_input_is_ignored(engine, clock, dispatcher) -> None:
    engine.edit(Field.A, "   ")
    clock.at_ms(1000)
    engine.tick()
    assert dispatcher.jobs == []


def test_reverse_direction_uses_swapped_languages(engine, clock, dispatcher, translator) -> None:
    engine.switch_field()
    for ch in "house":
        engine.type_char(ch)
    clock.at_ms(400)
    engine.tick()
    dispatcher.run_all()
    engine.tick()

    assert engine.text(Field.A) == "huis"
    assert translator.requests == [("house", "EN", "NL")]


def test_result_dropped_when_target_edited_after_start(engine, clock, dispatcher) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()

    clock.at_ms(600)
    engine.edit(Field.B, "home")
    dispatcher.run_all()
    engine.tick()

    assert engine.text(Field.B) == "home"
    assert engine.state is not EngineState.IN_FLIGHT


def test_result_dropped_when_source_changed(engine, clock, dispatcher) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()

    engine.edit(Field.A, "kat")
    dispatcher.run_all()
    engine.tick()

    assert engine.text(Field.B) == ""
    clock.at_ms(1000)
    engine.tick()
    dispatcher.run_all()
    engine.tick()
    assert engine.text(Field.B) == "cat"


def test_uncorrelated_result_is_discarded(engine, clock, dispatcher) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()
    pending = engine.pending
    assert pending is not None

    engine._results.put(
        TranslationOutcome(Direction.A_TO_B, "hui", pending.started_at, translation="wrong")
    )
    engine.tick()

    assert engine.text(Field.A) == "huis"
    assert engine.text(Field.B) == ""
    assert engine.pending == pending
    assert engine.state is EngineState.IN_FLIGHT
    assert len(dispatcher.jobs) == 1


def test_failure_sets_message_and_keeps_fields(clock, dispatcher) -> None:
    engine = SuggestionEngine(_FailingTranslator(), clock=clock, dispatch=dispatcher)
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()
    dispatcher.run_all()
    engine.tick()

    assert engine.message == "Translation failed: Translation API error (456): quota exceeded"
    assert engine.text(Field.A) == "huis"
    assert engine.text(Field.B) == ""
    assert engine.state is not EngineState.IN_FLIGHT


def test_only_one_request_in_flight(engine, clock, dispatcher) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()

    clock.at_ms(600)
    engine.edit(Field.B, "cat")
    clock.at_ms(1200)
    engine.tick()
    assert len(dispatcher.jobs) == 1

    dispatcher.run_all()
    engine.tick()
    assert len(dispatcher.jobs) == 1
    dispatcher.run_all()
    engine.tick()
    assert engine.text(Field.A) == "CAT"


def test_clearing_resets_bookkeeping(engine, clock, dispatcher, translator) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()
    dispatcher.run_all()
    engine.tick()

    engine.clear()
    assert engine.text(Field.A) == engine.text(Field.B) == ""
    engine.edit(Field.A, "huis")
    clock.at_ms(1000)
    engine.tick()

    assert len(dispatcher.jobs) == 1


def test_clearing_while_in_flight_drops_the_result(engine, clock, dispatcher) -> None:
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()

    engine.edit(Field.A, "")
    dispatcher.run_all()
    engine.tick()

    assert engine.text(Field.B) == ""
    assert engine.state is EngineState.IDLE


def test_no_requests_outside_word_entry_or_without_translator(clock, dispatcher) -> None:
    engine = SuggestionEngine(None, clock=clock, dispatch=dispatcher)
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()
    assert dispatcher.jobs == []

    engine = SuggestionEngine(_DictTranslator({}), clock=clock, dispatch=dispatcher)
    engine.in_word_entry = False
    engine.edit(Field.A, "huis")
    clock.at_ms(1000)
    engine.tick()
    assert dispatcher.jobs == []


def test_default_dispatch_runs_on_background_thread(translator) -> None:
    """The real thread-based dispatcher delivers its result through the queue."""

    ticks = {"now": 0.0}
    engine = SuggestionEngine(translator, clock=lambda: ticks["now"])
    engine.edit(Field.A, "huis")
    ticks["now"] = 1.0
    engine.tick()

    for _ in range(200):
        if engine.text(Field.B):
            break
        time.sleep(0.01)
        engine.tick()

    assert engine.text(Field.B) == "house"


def test_save_validates_and_stores_active_field(engine, tmp_path: Path) -> None:
    store = JsonVocabularyStore(tmp_path / "words.json")

    assert not engine.save(store)
    assert engine.message == "Word cannot be empty"

    engine.edit(Field.A, "huis")
    assert not engine.save(store)
    assert engine.message == "Translation cannot be empty"

    engine.edit(Field.B, "house")
    assert engine.save(store)
    assert engine.message == "Word saved"
    assert engine.text(Field.A) == ""
    [word] = store.load_all_words()
    assert (word["text"], word["translation"], word["language"]) == ("huis", "house", "NL")
    assert (word["chapter"], word["group"]) == ("Manual", "Vocabulaire")

    engine.edit(Field.A, "Huis")
    engine.edit(Field.B, "home")
    assert not engine.save(store)
    assert engine.message == "Word already exists"


def test_failed_text_is_retried_only_after_another_edit(clock, dispatcher) -> None:
    engine = SuggestionEngine(_FailingTranslator(), clock=clock, dispatch=dispatcher)
    engine.edit(Field.A, "huis")
    clock.at_ms(500)
    engine.tick()
    dispatcher.run_all()
    engine.tick()
    clock.at_ms(2000)
    engine.tick()
    assert dispatcher.jobs == []

    engine.edit(Field.A, "huis")
    clock.at_ms(2500)
    engine.tick()
    assert len(dispatcher.jobs) == 1


def test_from_settings_uses_configured_debounce_and_languages(clock, dispatcher, translator) -> None:
    settings = Settings(source_lang="EN", target_lang="NL", debounce_ms=1000, tick_ms=250)
    engine = SuggestionEngine.from_settings(translator, settings, clock=clock, dispatch=dispatcher)
    assert engine.tick_interval == pytest.approx(0.25)

    engine.edit(Field.A, "house")
    clock.at_ms(600)
    engine.tick()
    assert dispatcher.jobs == []

    clock.at_ms(1100)
    engine.tick()
    dispatcher.run_all()
    engine.tick()

    assert engine.text(Field.B) == "huis"
    assert translator.requests == [("house", "EN", "NL")]


def test_run_ticks_until_stopped(clock, translator) -> None:
    stop = threading.Event()
    jobs: List[Callable[[], None]] = []

    def dispatch(job: Callable[[], None]) -> None:
        jobs.append(job)
        stop.set()

    engine = SuggestionEngine(translator, tick_ms=10, clock=clock, dispatch=dispatch)
    engine.edit(Field.A, "kat")
    clock.at_ms(500)

    engine.run(stop)

    assert len(jobs) == 1
    assert engine.state is EngineState.IN_FLIGHT
