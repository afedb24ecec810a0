"""
Vision-model OCR requests against an OpenAI-compatible chat endpoint.
"""

import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import fitz  # PyMuPDF
from openai import OpenAI

from core.sanitizer import finalize
from core.stream import StreamAccumulator
from prompts import MODE_PROMPTS, MODE_SAMPLING, STYLE_PROMPTS, OcrMode, OcrStyle


class OcrError(Exception):
    """Raised when a recognition request fails."""


NO_TEXT_MESSAGE = "No text generated from the model."
MAX_TOKENS = 4096
# Ollama-specific knobs; other OpenAI-compatible servers ignore extra_body.
OLLAMA_EXTRA_BODY: Dict[str, Any] = {
    "think": False,
    "options": {
        "num_ctx": 8192,
        "repeat_penalty": 1.2,
        "top_k": 20,
        "top_p": 0.8,
        "min_p": 0,
    },
}
PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str


def load_image(path: str, page: int = 0) -> ImagePayload:
    """Read an image file from disk. PDFs are rendered to PNG (one page)."""
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    mime_type, _ = mimetypes.guess_type(file_path.name)
    return image_from_bytes(file_path.read_bytes(), mime_type, filename=file_path.name, page=page)


def image_from_bytes(
    data: bytes,
    mime_type: Optional[str],
    filename: Optional[str] = None,
    page: int = 0,
) -> ImagePayload:
    """
    Build a payload from raw upload bytes.

    The declared mime type wins; otherwise it is guessed from the filename.
    Anything that is neither image/* nor a PDF is rejected.
    """
    if not data:
        raise OcrError("OCR Failed: Image file is empty.")
    if not mime_type or mime_type == "application/octet-stream":
        mime_type, _ = mimetypes.guess_type(filename or "")
    if mime_type == PDF_MIME_TYPE:
        return ImagePayload(_render_pdf_page(data, page), "image/png")
    if not mime_type or not mime_type.startswith("image/"):
        raise OcrError(f"OCR Failed: Unsupported file type '{mime_type or filename}'.")
    return ImagePayload(data, mime_type)


def _render_pdf_page(data: bytes, page: int) -> bytes:
    """Render one PDF page at 2x resolution as PNG."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise OcrError(f"OCR Failed: Could not open PDF: {e}") from e
    try:
        if page < 0 or page >= len(doc):
            raise OcrError(f"OCR Failed: PDF has {len(doc)} page(s); page {page + 1} requested.")
        pix = doc.load_page(page).get_pixmap(matrix=fitz.Matrix(2, 2))
        return pix.tobytes("png")
    finally:
        doc.close()


def to_data_url(payload: ImagePayload) -> str:
    encoded = base64.b64encode(payload.data).decode("utf-8")
    return f"data:{payload.mime_type};base64,{encoded}"


def build_messages(payload: ImagePayload, style: OcrStyle, mode: OcrMode) -> List[Dict[str, Any]]:
    """System message carries the mode rules; the user turn carries the style task and the image."""
    return [
        {"role": "system", "content": MODE_PROMPTS[mode]},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": STYLE_PROMPTS[style]},
                {"type": "image_url", "image_url": {"url": to_data_url(payload)}},
            ],
        },
    ]


def build_request(
    payload: ImagePayload,
    style: OcrStyle,
    mode: OcrMode,
    model: str,
    stream: bool = False,
) -> Dict[str, Any]:
    """Keyword arguments for client.chat.completions.create."""
    request: Dict[str, Any] = {
        "model": model,
        "messages": build_messages(payload, style, mode),
        "max_tokens": MAX_TOKENS,
        "extra_body": OLLAMA_EXTRA_BODY,
        **MODE_SAMPLING[mode],
    }
    if stream:
        request["stream"] = True
    return request


def create_client(config: Dict[str, str]) -> OpenAI:
    return OpenAI(base_url=config["base_url"].rstrip("/"), api_key=config["api_key"])


def perform_ocr(
    payload: ImagePayload,
    style: OcrStyle,
    mode: OcrMode,
    config: Dict[str, str],
    client: Optional[OpenAI] = None,
) -> str:
    """
    Run one non-streaming recognition request and return the cleaned text.

    Raises OcrError for transport failures and empty model output.
    """
    client = client or create_client(config)
    try:
        response = client.chat.completions.create(
            **build_request(payload, style, mode, config["model"])
        )
        text = response.choices[0].message.content if response.choices else None
    except Exception as e:
        raise OcrError(f"OCR Failed: {e}") from e

    if not text:
        raise OcrError(f"OCR Failed: {NO_TEXT_MESSAGE}")
    return finalize(text)


def iter_fragments(
    payload: ImagePayload,
    style: OcrStyle,
    mode: OcrMode,
    config: Dict[str, str],
    client: Optional[OpenAI] = None,
) -> Iterator[str]:
    """
    Yield raw text deltas from a streaming request.

    Closing the generator early closes the underlying HTTP stream; that is
    the only cancellation mechanism.
    """
    client = client or create_client(config)
    try:
        stream = client.chat.completions.create(
            **build_request(payload, style, mode, config["model"], stream=True)
        )
    except Exception as e:
        raise OcrError(f"OCR Failed: {e}") from e

    try:
        for chunk in _iter_chunks(stream):
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content
    finally:
        stream.close()


def _iter_chunks(stream) -> Iterator[Any]:
    try:
        for chunk in stream:
            yield chunk
    except Exception as e:
        raise OcrError(f"OCR Failed: {e}") from e


def stream_ocr(
    payload: ImagePayload,
    style: OcrStyle,
    mode: OcrMode,
    config: Dict[str, str],
    on_update: Optional[Callable[[str], None]] = None,
    client: Optional[OpenAI] = None,
) -> str:
    """Stream a recognition request, pushing display text to on_update; return the final text."""
    accumulator = StreamAccumulator(on_update=on_update)
    for fragment in iter_fragments(payload, style, mode, config, client=client):
        accumulator.append(fragment)
    if not accumulator.raw:
        raise OcrError(f"OCR Failed: {NO_TEXT_MESSAGE}")
    return accumulator.finish()
