"""OCR providers returning normalized text lines for a vocabulary page image."""

from __future__ import annotations

import importlib
import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Iterable, List, Protocol, Tuple

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .config import Settings
from .types import OCRLine

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")

# Vision API TextAnnotation.DetectedBreak.BreakType values that end a line
_LINE_ENDING_BREAKS = {3, 5}
_WORD_ENDING_BREAKS = {1, 2}


class OCRError(Exception):
    """Raised when text recognition fails or returns unusable output."""


class OCRProvider(Protocol):
    def recognize(self, image_path: Path) -> List[OCRLine]:
        ...


class _BoxModel(BaseModel):
    x: float
    y: float
    w: float = Field(..., ge=0)
    h: float = Field(..., ge=0)


class _LineModel(BaseModel):
    text: str
    bbox: _BoxModel
    confidence: float = 0.0


_LINES_ADAPTER = TypeAdapter(List[_LineModel])


def image_size(image_path: Path) -> Tuple[int, int]:
    """Return ``(width, height)``, failing early on files Pillow cannot read."""
    try:
        with Image.open(image_path) as im:
            return im.size
    except (UnidentifiedImageError, OSError) as exc:
        raise OCRError(f"Failed to load image: {image_path}") from exc


def _ensure_readable_image(image_path: Path) -> None:
    # Unreadable files fail here, before the helper runs.
    image_size(image_path)


def parse_ocr_output(raw: bytes | str) -> List[OCRLine]:
    """Validate the helper's JSON output into :class:`OCRLine` records."""
    try:
        models = _LINES_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise OCRError(f"Failed to parse OCR output: {exc.error_count()} invalid field(s)") from exc
    return [
        {
            "text": model.text,
            "bbox": {"x": model.bbox.x, "y": model.bbox.y, "w": model.bbox.w, "h": model.bbox.h},
            "confidence": model.confidence,
        }
        for model in models
    ]


class VisionScriptOCR:
    """Runs the macOS Vision helper script and reads its JSON from stdout."""

    def __init__(self, script_path: Path, timeout: float = 120.0) -> None:
        self._script_path = script_path
        self._timeout = timeout

    def recognize(self, image_path: Path) -> List[OCRLine]:
        if sys.platform != "darwin":
            raise OCRError("Vision OCR is only supported on macOS")
        if not self._script_path.exists():
            raise OCRError(f"Missing {self._script_path}")
        _ensure_readable_image(image_path)

        try:
            completed = subprocess.run(
                ["swift", str(self._script_path), "--image", str(image_path)],
                capture_output=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise OCRError(f"Failed to run vision OCR: {exc}") from exc

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace").strip()
            raise OCRError(f"Vision OCR failed: {stderr}")
        lines = parse_ocr_output(completed.stdout)
        logger.info("Vision OCR returned %s lines for %s", len(lines), image_path.name)
        return lines


def _load_vision_module() -> Any:
    try:
        return importlib.import_module("google.cloud.vision")
    except ImportError as exc:
        raise OCRError("google-cloud-vision not installed") from exc


def _vertices_box(bounding_box: Any) -> Tuple[float, float, float, float]:
    vertices: Iterable[Any] = getattr(bounding_box, "vertices", [])
    xs = [float(getattr(vertex, "x", 0)) for vertex in vertices]
    ys = [float(getattr(vertex, "y", 0)) for vertex in vertices]
    if not xs:
        return (0.0, 0.0, 0.0, 0.0)
    return (min(xs), min(ys), max(xs), max(ys))


def _break_type(symbol: Any) -> int:
    prop = getattr(symbol, "property", None)
    detected = getattr(prop, "detected_break", None)
    return int(getattr(detected, "type_", 0) or 0)


def _collect_lines(response: Any, width: int, height: int) -> List[OCRLine]:
    """Split Vision paragraphs into lines at detected line breaks."""

    lines: List[OCRLine] = []
    annotation: Any = getattr(response, "full_text_annotation", None)
    for page in getattr(annotation, "pages", []):
        for block in getattr(page, "blocks", []):
            for paragraph in getattr(block, "paragraphs", []):
                text_parts: List[str] = []
                boxes: List[Tuple[float, float, float, float]] = []
                confidences: List[float] = []

                def flush() -> None:
                    text = "".join(text_parts).strip()
                    if text and boxes:
                        x0 = min(b[0] for b in boxes)
                        y0 = min(b[1] for b in boxes)
                        x1 = max(b[2] for b in boxes)
                        y1 = max(b[3] for b in boxes)
                        lines.append(
                            {
                                "text": text,
                                "bbox": {
                                    "x": x0 / width,
                                    "y": 1.0 - y1 / height,
                                    "w": (x1 - x0) / width,
                                    "h": (y1 - y0) / height,
                                },
                                "confidence": sum(confidences) / len(confidences),
                            }
                        )
                    text_parts.clear()
                    boxes.clear()
                    confidences.clear()

                for word in getattr(paragraph, "words", []):
                    boxes.append(_vertices_box(getattr(word, "bounding_box", None)))
                    confidences.append(float(getattr(word, "confidence", 0.0)))
                    ends_line = False
                    for symbol in getattr(word, "symbols", []):
                        text_parts.append(str(getattr(symbol, "text", "")))
                        kind = _break_type(symbol)
                        if kind in _WORD_ENDING_BREAKS:
                            text_parts.append(" ")
                        elif kind in _LINE_ENDING_BREAKS:
                            ends_line = True
                    if ends_line:
                        flush()
                flush()
    return lines


class GoogleVisionOCR:
    """Google Cloud Vision document OCR, converted to bottom-origin normalized lines."""

    def __init__(self, language_hint: str | None = None) -> None:
        self._language_hint = language_hint

    def recognize(self, image_path: Path) -> List[OCRLine]:
        width, height = image_size(image_path)
        vision = _load_vision_module()
        client = vision.ImageAnnotatorClient()
        image = vision.Image(content=image_path.read_bytes())
        image_context: Any | None = None
        if self._language_hint:
            image_context = vision.ImageContext(language_hints=[self._language_hint])
        try:
            response: Any = client.document_text_detection(image=image, image_context=image_context)
        except Exception as exc:  # noqa: BLE001 - SDK raises transport-specific errors
            raise OCRError(f"Google Vision request failed: {exc}") from exc
        message = getattr(getattr(response, "error", None), "message", "")
        if message:
            raise OCRError(f"Google Vision request failed: {message}")
        lines = _collect_lines(response, width, height)
        logger.info("Google Vision returned %s lines for %s", len(lines), image_path.name)
        return lines


def get_ocr_provider(settings: Settings) -> OCRProvider:
    provider = settings.ocr_provider
    if provider == "google":
        return GoogleVisionOCR(language_hint=settings.source_lang.lower())
    if provider != "vision":
        logger.warning("Unknown OCR provider '%s'; defaulting to Vision", provider)
    return VisionScriptOCR(Path(settings.vision_ocr_script), timeout=settings.ocr_timeout_seconds)


def run_ocr(image_path: Path, provider: OCRProvider | None = None) -> List[OCRLine]:
    provider = provider or get_ocr_provider(Settings.from_env())
    return provider.recognize(image_path)


def list_import_images(directory: Path) -> List[str]:
    """Return sorted names of jpg/jpeg/png files in ``directory``."""
    if not directory.is_dir():
        return []
    return sorted(
        path.name
        for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS
    )


__all__ = [
    "OCRError",
    "OCRProvider",
    "VisionScriptOCR",
    "GoogleVisionOCR",
    "get_ocr_provider",
    "image_size",
    "list_import_images",
    "parse_ocr_output",
    "run_ocr",
]
