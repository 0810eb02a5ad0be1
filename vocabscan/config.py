"""Configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_AUTH_HEADER = "Authorization"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass
class Settings:
    """Runtime settings for OCR, translation, import and live suggestions."""

    # Translation API (DeepL-compatible)
    translation_api_url: Optional[str] = None
    translation_api_key: Optional[str] = None
    translation_auth_header: str = DEFAULT_AUTH_HEADER
    translation_timeout_seconds: float = 15.0
    translation_max_retries: int = 3
    translation_min_interval_seconds: float = 0.0
    translation_chunk_size: int = 25

    # Language pair of the imported word lists
    source_lang: str = "NL"
    target_lang: str = "EN"

    # Layout heuristics
    column_threshold: float = 0.08

    # Live suggestions
    debounce_ms: int = 400
    tick_ms: int = 100

    # OCR
    ocr_provider: str = "vision"
    vision_ocr_script: str = "scripts/vision_ocr.swift"
    ocr_timeout_seconds: float = 120.0

    # Files
    store_path: str = "./data/words.json"
    import_image_dir: str = "img"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            translation_api_url=os.getenv("TRANSLATION_API_URL") or None,
            translation_api_key=os.getenv("TRANSLATION_API_KEY") or None,
            translation_auth_header=os.getenv("TRANSLATION_API_AUTH_HEADER", DEFAULT_AUTH_HEADER),
            translation_timeout_seconds=_env_float("TRANSLATION_TIMEOUT_SECONDS", 15.0),
            translation_max_retries=_env_int("TRANSLATION_MAX_RETRIES", 3),
            translation_min_interval_seconds=_env_float("TRANSLATION_MIN_INTERVAL_SECONDS", 0.0),
            translation_chunk_size=_env_int("TRANSLATION_CHUNK_SIZE", 25),
            source_lang=os.getenv("SOURCE_LANG", "NL").upper(),
            target_lang=os.getenv("TARGET_LANG", "EN").upper(),
            column_threshold=_env_float("COLUMN_THRESHOLD", 0.08),
            debounce_ms=_env_int("TRANSLATE_DEBOUNCE_MS", 400),
            tick_ms=_env_int("TICK_MS", 100),
            ocr_provider=os.getenv("OCR_PROVIDER", "vision").lower().strip(),
            vision_ocr_script=os.getenv("VISION_OCR_SCRIPT", "scripts/vision_ocr.swift"),
            ocr_timeout_seconds=_env_float("OCR_TIMEOUT_SECONDS", 120.0),
            store_path=os.getenv("VOCAB_STORE_PATH", "./data/words.json"),
            import_image_dir=os.getenv("IMPORT_IMAGE_DIR", "img"),
        )

    def auth_header_pair(self) -> Optional[tuple[str, str]]:
        """Return the ``(header, value)`` used to authenticate, if a key is set.

        A plain ``Authorization`` header gets the ``DeepL-Auth-Key`` scheme;
        any custom header carries the bare key.
        """
        if not self.translation_api_key:
            return None
        header = self.translation_auth_header or DEFAULT_AUTH_HEADER
        if header.lower() == DEFAULT_AUTH_HEADER.lower():
            return header, f"DeepL-Auth-Key {self.translation_api_key}"
        return header, self.translation_api_key

    def ensure_directories(self) -> None:
        """Create the store directory if it doesn't exist."""
        Path(self.store_path).parent.mkdir(parents=True, exist_ok=True)


__all__ = ["Settings"]
