"""FastAPI server exposing page import and single-word translation."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import tempfile
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import Settings
from .importer import ImportFailed, ImportOptions, import_from_image, preview_image
from .layout import HeadingRule, build_preview_lines
from .ocr import OCRProvider, get_ocr_provider, list_import_images
from .store import JsonVocabularyStore, StoreError, VocabularyStore
from .translate import TranslationError, Translator, get_translator, translate_text

logger = logging.getLogger(__name__)

app: FastAPI = FastAPI(title="Vocabscan API", version="0.1.0")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def _default_store() -> JsonVocabularyStore:
    settings = get_settings()
    settings.ensure_directories()
    return JsonVocabularyStore(Path(settings.store_path))


def get_store() -> VocabularyStore:
    try:
        return _default_store()
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def get_translation_client() -> Translator:
    try:
        return get_translator(get_settings())
    except TranslationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def get_ocr() -> OCRProvider:
    return get_ocr_provider(get_settings())


class ImportRequest(BaseModel):
    chapter: str = Field(..., min_length=1)
    image_name: Optional[str] = Field(default=None, description="File name inside the import image directory")
    image_b64: Optional[str] = None
    buffered: bool = False
    case_sensitive_headings: bool = True


class TranslateRequest(BaseModel):
    text: str = Field(..., min_length=1)
    direction: Literal["A->B", "B->A"] = "A->B"


def _options(req: ImportRequest, settings: Settings) -> ImportOptions:
    return ImportOptions(
        source_lang=settings.source_lang,
        target_lang=settings.target_lang,
        chunk_size=settings.translation_chunk_size,
        column_threshold=settings.column_threshold,
        heading_rule=HeadingRule(case_sensitive=req.case_sensitive_headings),
        buffered=req.buffered,
    )


@contextmanager
def _image_path(req: ImportRequest, settings: Settings) -> Iterator[Path]:
    if req.image_b64:
        try:
            _, data = req.image_b64.split(",", 1)
        except ValueError:
            data = req.image_b64
        try:
            content = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(status_code=400, detail="image_b64 is not valid base64") from exc
        fd, tmp_name = tempfile.mkstemp(suffix=".img")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            yield tmp_path
        finally:
            tmp_path.unlink(missing_ok=True)
        return
    if req.image_name:
        image_dir = Path(settings.import_image_dir)
        path = image_dir / Path(req.image_name).name
        if not path.is_file():
            raise HTTPException(status_code=404, detail=f"Image not found: {req.image_name}")
        yield path
        return
    raise HTTPException(status_code=400, detail="Provide image_name or image_b64")


def _chapter(req: ImportRequest) -> str:
    chapter = req.chapter.strip()
    if not chapter:
        raise HTTPException(status_code=400, detail="chapter must not be blank")
    return chapter


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/images")
def images(settings: Settings = Depends(get_settings)) -> Dict[str, List[str]]:
    return {"images": list_import_images(Path(settings.import_image_dir))}


@app.get("/chapters")
def chapters(store: VocabularyStore = Depends(get_store)) -> Dict[str, List[str]]:
    try:
        return {"chapters": store.list_chapters()}
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/import/preview")
def import_preview(
    req: ImportRequest,
    settings: Settings = Depends(get_settings),
    store: VocabularyStore = Depends(get_store),
    ocr: OCRProvider = Depends(get_ocr),
) -> Dict[str, Any]:
    chapter = _chapter(req)
    with _image_path(req, settings) as path:
        try:
            items = preview_image(path, store, ocr, chapter, _options(req, settings))
        except ImportFailed as exc:
            raise HTTPException(status_code=502, detail=f"Preview failed: {exc}") from exc
    return {
        "chapter": chapter,
        "items": [dict(item) for item in items],
        "preview": build_preview_lines(items),
    }


@app.post("/import")
def import_page(
    req: ImportRequest,
    settings: Settings = Depends(get_settings),
    store: VocabularyStore = Depends(get_store),
    translator: Translator = Depends(get_translation_client),
    ocr: OCRProvider = Depends(get_ocr),
) -> Dict[str, Any]:
    chapter = _chapter(req)
    with _image_path(req, settings) as path:
        try:
            result = import_from_image(path, store, translator, ocr, chapter, _options(req, settings))
        except ImportFailed as exc:
            raise HTTPException(
                status_code=502,
                detail={
                    "message": f"Import failed: {exc}",
                    "inserted": exc.result.inserted,
                    "skipped": exc.result.skipped,
                },
            ) from exc
    return {"chapter": chapter, "inserted": result.inserted, "skipped": result.skipped}


@app.post("/translate")
def translate(
    req: TranslateRequest,
    settings: Settings = Depends(get_settings),
    translator: Translator = Depends(get_translation_client),
) -> Dict[str, str]:
    source_lang, target_lang = settings.source_lang, settings.target_lang
    if req.direction == "B->A":
        source_lang, target_lang = target_lang, source_lang
    try:
        translated = translate_text(translator, req.text.strip(), source_lang, target_lang)
    except TranslationError as exc:
        logger.warning("Translation of %r failed: %s", req.text, exc)
        raise HTTPException(status_code=502, detail=f"Translation failed: {exc}") from exc
    return {"text": req.text.strip(), "translation": translated}


def serve() -> None:
    """Run the API with uvicorn using the package logging setup."""
    import uvicorn

    from .logging_config import configure_logging

    configure_logging()
    uvicorn.run(
        app,
        host=os.getenv("VOCABSCAN_HOST", "127.0.0.1"),
        port=int(os.getenv("VOCABSCAN_PORT", "8000")),
        log_config=None,
    )


__all__ = ["app", "serve"]
