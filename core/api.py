"""Browser surface: upload an image, pick style/mode, stream the recognized text."""

from __future__ import annotations

import json
from typing import Iterator

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

from config import load_config, read_config
from core.results import OcrResult
from core.settings_store import SettingsIOError, save_settings
from core.stream import StreamAccumulator
from ocr_service import (
    NO_TEXT_MESSAGE,
    ImagePayload,
    OcrError,
    image_from_bytes,
    iter_fragments,
    perform_ocr,
)
from paths import SETTINGS_PATH, TEMPLATES_DIR
from prompts import MODE_LABELS, OCR_OPTIONS, OcrMode, OcrStyle, parse_mode, parse_style

app = FastAPI(title="Omni-OCR", docs_url=None, redoc_url=None)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _config(overrides: dict | None = None) -> dict:
    try:
        return load_config(overrides, settings_path=SETTINGS_PATH)
    except ValueError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except SettingsIOError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def _options() -> dict:
    return {
        "styles": [
            {"id": o.id.value, "label": o.label, "description": o.description}
            for o in OCR_OPTIONS
        ],
        "modes": [{"id": m.value, "label": MODE_LABELS[m]} for m in OcrMode],
    }


def _parse_choices(style: str, mode: str) -> tuple[OcrStyle, OcrMode]:
    try:
        return parse_style(style), parse_mode(mode)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


async def _read_payload(file: UploadFile) -> ImagePayload:
    try:
        contents = await file.read()
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Failed to read file: {e}") from e
    try:
        return image_from_bytes(contents, file.content_type, filename=file.filename)
    except OcrError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@app.get("/", response_class=HTMLResponse)
async def index(request: Request, saved: str | None = None) -> HTMLResponse:
    # Invalid configuration must not hide the settings form that fixes it.
    config_error = None
    try:
        config = load_config(settings_path=SETTINGS_PATH)
    except ValueError as e:
        config_error = str(e)
        config = read_config(settings_path=SETTINGS_PATH)
    except SettingsIOError as e:
        config_error = str(e)
        config = read_config(settings_path=SETTINGS_PATH, include_saved=False)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "options": _options(),
            "base_url": config["base_url"],
            "model": config["model"],
            "saved": saved,
            "config_error": config_error,
        },
    )


@app.get("/api/options")
async def options() -> JSONResponse:
    return JSONResponse(_options())


@app.get("/api/settings")
async def get_settings() -> JSONResponse:
    config = _config()
    return JSONResponse({"base_url": config["base_url"], "model": config["model"]})


@app.post("/settings")
async def update_settings(
    base_url: str = Form(""),
    model: str = Form(""),
) -> RedirectResponse:
    try:
        load_config({"base_url": base_url, "model": model}, settings_path=SETTINGS_PATH)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    try:
        save_settings(SETTINGS_PATH, base_url=base_url, model=model)
    except SettingsIOError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return RedirectResponse("/?saved=1", status_code=303)


@app.post("/recognize")
async def recognize(
    file: UploadFile = File(...),
    style: str = Form(OcrStyle.TEXT.value),
    mode: str = Form(OcrMode.STRICT.value),
) -> JSONResponse:
    ocr_style, ocr_mode = _parse_choices(style, mode)
    payload = await _read_payload(file)
    config = _config()
    try:
        text = await run_in_threadpool(perform_ocr, payload, ocr_style, ocr_mode, config)
    except OcrError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return JSONResponse(OcrResult(text=text, style=ocr_style).to_dict())


@app.post("/recognize/stream")
async def recognize_stream(
    file: UploadFile = File(...),
    style: str = Form(OcrStyle.TEXT.value),
    mode: str = Form(OcrMode.STRICT.value),
) -> StreamingResponse:
    ocr_style, ocr_mode = _parse_choices(style, mode)
    payload = await _read_payload(file)
    config = _config()
    return StreamingResponse(
        _stream_events(payload, ocr_style, ocr_mode, config),
        media_type="application/x-ndjson",
    )


def _stream_events(
    payload: ImagePayload,
    style: OcrStyle,
    mode: OcrMode,
    config: dict,
) -> Iterator[str]:
    """One NDJSON line per fragment, then a final or error line."""
    accumulator = StreamAccumulator()
    try:
        for fragment in iter_fragments(payload, style, mode, config):
            yield _event("update", text=accumulator.append(fragment))
    except OcrError as e:
        yield _event("error", detail=str(e))
        return
    if not accumulator.raw:
        yield _event("error", detail=f"OCR Failed: {NO_TEXT_MESSAGE}")
        return
    yield _event("final", **OcrResult(text=accumulator.finish(), style=style).to_dict())


def _event(kind: str, **fields) -> str:
    return json.dumps({"type": kind, **fields}, ensure_ascii=False) + "\n"
