"""Translation client and chunked batch translation of import items."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import requests

from .config import Settings
from .types import ImportItem

DEFAULT_CHUNK_SIZE = 25  # Items per request; keeps payloads well under API limits
INITIAL_RETRY_DELAY_SECONDS = 1.0
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

logger = logging.getLogger(__name__)


class TranslationError(Exception):
    """Raised when a translation provider cannot satisfy a request."""


class Translator(Protocol):
    def translate_batch(
        self,
        texts: Sequence[str],
        source_lang: str,
        target_lang: str,
    ) -> List[str]:
        """Return exactly one translation per input text, in input order."""
        ...


def _retry_after_seconds(response: requests.Response) -> float | None:
    header_value = response.headers.get("Retry-After")
    if not header_value:
        return None
    try:
        return float(header_value)
    except (TypeError, ValueError):
        return None


def _error_body(response: requests.Response) -> str:
    try:
        return response.text.strip()[:200]
    except (UnicodeDecodeError, ValueError):
        return ""


class DeepLTranslator:
    """Client for a DeepL-compatible ``POST {text, source_lang, target_lang}`` endpoint."""

    def __init__(
        self,
        url: str,
        *,
        auth: Optional[Tuple[str, str]] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        min_interval: float = 0.0,
        retry_delay: float = INITIAL_RETRY_DELAY_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._min_interval = min_interval
        self._retry_delay = retry_delay
        self._session = session or requests.Session()
        if auth is not None:
            header, value = auth
            self._session.headers[header] = value
        self._rate_limit_lock = threading.Lock()
        self._last_call = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "DeepLTranslator":
        if not settings.translation_api_url:
            raise TranslationError("Missing TRANSLATION_API_URL for translation")
        return cls(
            settings.translation_api_url,
            auth=settings.auth_header_pair(),
            timeout=settings.translation_timeout_seconds,
            max_retries=settings.translation_max_retries,
            min_interval=settings.translation_min_interval_seconds,
        )

    def _respect_rate_limit(self) -> None:
        """Sleep just enough to keep calls ``min_interval`` apart across threads."""

        if self._min_interval <= 0:
            return
        with self._rate_limit_lock:
            now = time.monotonic()
            wait = self._last_call + self._min_interval - now
            if wait > 0:
                logger.debug("Throttling translation call for %.2fs", wait)
                time.sleep(wait)
                now = time.monotonic()
            self._last_call = now

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        delay = self._retry_delay
        last_error = "no attempt made"
        for attempt in range(self._max_retries):
            self._respect_rate_limit()
            try:
                response = self._session.post(self._url, json=payload, timeout=self._timeout)
            except requests.RequestException as exc:
                last_error = f"Failed to call translation API: {exc}"
                logger.warning(
                    "Translation API call failed (attempt %s/%s): %s",
                    attempt + 1,
                    self._max_retries,
                    exc,
                )
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return response
                last_error = (
                    f"Translation API error ({response.status_code}): {_error_body(response)}"
                )
                logger.warning(
                    "Translation API returned %s (attempt %s/%s)",
                    response.status_code,
                    attempt + 1,
                    self._max_retries,
                )
                retry_hint = _retry_after_seconds(response)
                if retry_hint is not None:
                    delay = max(retry_hint, delay)
            if attempt + 1 < self._max_retries:
                time.sleep(delay)
                delay *= 1.5
        raise TranslationError(last_error)

    def translate_batch(
        self,
        texts: Sequence[str],
        source_lang: str,
        target_lang: str,
    ) -> List[str]:
        if not texts:
            return []
        payload = {
            "text": list(texts),
            "source_lang": source_lang,
            "target_lang": target_lang,
        }
        response = self._post(payload)
        if not response.ok:
            raise TranslationError(
                f"Translation API error ({response.status_code}): {_error_body(response)}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise TranslationError(f"Invalid API response: {exc}") from exc

        items = body.get("translations") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise TranslationError("Invalid API response: missing translations")
        if len(items) != len(texts):
            raise TranslationError("Translation API response count mismatch")
        translations: List[str] = []
        for item in items:
            text = item.get("text") if isinstance(item, dict) else None
            if not isinstance(text, str):
                raise TranslationError("Invalid API response: translation without text")
            translations.append(text)
        return translations


def translate_text(
    translator: Translator,
    text: str,
    source_lang: str,
    target_lang: str,
) -> str:
    translations = translator.translate_batch([text], source_lang, target_lang)
    if not translations:
        raise TranslationError("API response missing translations")
    return translations[0]


def chunk_items(
    items: Sequence[ImportItem],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[List[ImportItem]]:
    """Yield contiguous chunks of at most ``chunk_size`` items in input order."""

    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    for start in range(0, len(items), chunk_size):
        yield list(items[start : start + chunk_size])


def iter_translated_chunks(
    items: Sequence[ImportItem],
    translator: Translator,
    source_lang: str,
    target_lang: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[Tuple[List[ImportItem], List[str]]]:
    """Translate chunk by chunk, yielding each chunk with its translations.

    Translation is lazy: a failing chunk raises :class:`TranslationError` when
    it is reached and later chunks are never requested.
    """

    for batch_index, chunk in enumerate(chunk_items(items, chunk_size)):
        texts = [item["text"] for item in chunk]
        try:
            translations = translator.translate_batch(texts, source_lang, target_lang)
        except TranslationError as exc:
            logger.error(
                "Translation failed for batch %s (size %s): %s",
                batch_index,
                len(chunk),
                exc,
            )
            raise
        if len(translations) != len(chunk):
            raise TranslationError("Translation API response count mismatch")
        yield chunk, translations


def translate_items(
    items: Sequence[ImportItem],
    translator: Translator,
    source_lang: str,
    target_lang: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> List[str]:
    translations: List[str] = []
    for _, chunk_translations in iter_translated_chunks(
        items, translator, source_lang, target_lang, chunk_size=chunk_size
    ):
        translations.extend(chunk_translations)
    return translations


_translator_instance: Translator | None = None


def get_translator(settings: Settings | None = None) -> Translator:
    """Return the process-wide translator, building it from settings on first use."""

    global _translator_instance
    if _translator_instance is not None:
        return _translator_instance
    _translator_instance = DeepLTranslator.from_settings(settings or Settings.from_env())
    return _translator_instance


def set_translator(translator: Translator | None) -> None:
    global _translator_instance
    _translator_instance = translator


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "TranslationError",
    "Translator",
    "DeepLTranslator",
    "translate_text",
    "chunk_items",
    "iter_translated_chunks",
    "translate_items",
    "get_translator",
    "set_translator",
]
