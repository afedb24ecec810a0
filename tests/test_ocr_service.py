"""
Tests for request construction and the OCR request paths.
Uses a mock OpenAI client; no endpoint or model required.
Run: python3 -m pytest tests/test_ocr_service.py -v
"""

import base64
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import fitz

import ocr_service
from ocr_service import (
    ImagePayload,
    OcrError,
    build_request,
    image_from_bytes,
    iter_fragments,
    load_image,
    perform_ocr,
    stream_ocr,
    to_data_url,
)
from prompts import MODE_PROMPTS, STYLE_PROMPTS, OcrMode, OcrStyle

CONFIG = {"base_url": "http://localhost:11434/v1", "model": "qwen3-vl:8b", "api_key": "ollama"}
PNG = ImagePayload(b"\x89PNG fake", "image/png")


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    """Iterable stand-in for openai.Stream that records close()."""

    def __init__(self, chunks, error=None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    def __iter__(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    def close(self):
        self.closed = True


def _client_returning(value):
    client = MagicMock()
    client.chat.completions.create.return_value = value
    return client


class TestRequestConstruction(unittest.TestCase):

    def test_data_url(self):
        url = to_data_url(PNG)
        self.assertTrue(url.startswith("data:image/png;base64,"))
        self.assertEqual(base64.b64decode(url.split(",", 1)[1]), PNG.data)

    def test_messages_use_mode_and_style_prompts(self):
        req = build_request(PNG, OcrStyle.JSON, OcrMode.ENHANCE, "m")
        system, user = req["messages"]
        self.assertEqual(system["role"], "system")
        self.assertEqual(system["content"], MODE_PROMPTS[OcrMode.ENHANCE])
        self.assertEqual(user["content"][0], {"type": "text", "text": STYLE_PROMPTS[OcrStyle.JSON]})
        self.assertEqual(user["content"][1]["type"], "image_url")
        self.assertTrue(user["content"][1]["image_url"]["url"].startswith("data:image/png;base64,"))

    def test_sampling_depends_on_mode(self):
        strict = build_request(PNG, OcrStyle.TEXT, OcrMode.STRICT, "m")
        enhance = build_request(PNG, OcrStyle.TEXT, OcrMode.ENHANCE, "m")
        self.assertLess(strict["temperature"], enhance["temperature"])
        self.assertEqual(enhance["temperature"], 0.7)
        self.assertEqual(strict["max_tokens"], 4096)
        self.assertFalse(strict["extra_body"]["think"])
        self.assertNotIn("stream", strict)

    def test_stream_flag(self):
        req = build_request(PNG, OcrStyle.TEXT, OcrMode.STRICT, "m", stream=True)
        self.assertTrue(req["stream"])

    def test_create_client_strips_trailing_slash(self):
        with patch.object(ocr_service, "OpenAI") as openai_cls:
            ocr_service.create_client({**CONFIG, "base_url": "http://host/v1/"})
        openai_cls.assert_called_once_with(base_url="http://host/v1", api_key="ollama")


class TestImageInput(unittest.TestCase):

    def test_declared_image_type(self):
        payload = image_from_bytes(b"jpegdata", "image/jpeg")
        self.assertEqual(payload.mime_type, "image/jpeg")

    def test_type_guessed_from_filename(self):
        payload = image_from_bytes(b"data", "application/octet-stream", filename="scan.png")
        self.assertEqual(payload.mime_type, "image/png")

    def test_unsupported_type_rejected(self):
        with self.assertRaises(OcrError):
            image_from_bytes(b"text", "text/plain", filename="notes.txt")

    def test_empty_upload_rejected(self):
        with self.assertRaises(OcrError):
            image_from_bytes(b"", "image/png")

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_image("/nonexistent/image.png")

    def test_pdf_rendered_to_png(self):
        doc = fitz.open()
        page = doc.new_page(width=200, height=100)
        page.insert_text((20, 50), "Hello")
        pdf_bytes = doc.tobytes()
        doc.close()
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "doc.pdf"
            path.write_bytes(pdf_bytes)
            payload = load_image(str(path))
        self.assertEqual(payload.mime_type, "image/png")
        self.assertTrue(payload.data.startswith(b"\x89PNG"))

    def test_pdf_page_out_of_range(self):
        doc = fitz.open()
        doc.new_page()
        pdf_bytes = doc.tobytes()
        doc.close()
        with self.assertRaises(OcrError):
            image_from_bytes(pdf_bytes, "application/pdf", page=3)


class TestPerformOcr(unittest.TestCase):

    def test_returns_finalized_text(self):
        client = _client_returning(_completion("<think>hm</think>\n```json\n{\"a\":1}\n```"))
        text = perform_ocr(PNG, OcrStyle.JSON, OcrMode.STRICT, CONFIG, client=client)
        self.assertEqual(text, '{"a":1}')
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "qwen3-vl:8b")

    def test_empty_content_raises(self):
        client = _client_returning(_completion(None))
        with self.assertRaises(OcrError) as ctx:
            perform_ocr(PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG, client=client)
        self.assertIn("No text generated", str(ctx.exception))

    def test_transport_error_wrapped(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = ConnectionError("refused")
        with self.assertRaises(OcrError) as ctx:
            perform_ocr(PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG, client=client)
        self.assertEqual(str(ctx.exception), "OCR Failed: refused")
        self.assertIsInstance(ctx.exception.__cause__, ConnectionError)


class TestStreaming(unittest.TestCase):

    def test_fragments_skip_empty_deltas(self):
        stream = FakeStream([_chunk(None), _chunk("He"), SimpleNamespace(choices=[]), _chunk("llo")])
        client = _client_returning(stream)
        fragments = list(iter_fragments(PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG, client=client))
        self.assertEqual(fragments, ["He", "llo"])
        self.assertTrue(stream.closed)
        self.assertTrue(client.chat.completions.create.call_args.kwargs["stream"])

    def test_closing_generator_closes_stream(self):
        stream = FakeStream([_chunk("a"), _chunk("b"), _chunk("c")])
        gen = iter_fragments(PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG, client=_client_returning(stream))
        self.assertEqual(next(gen), "a")
        gen.close()
        self.assertTrue(stream.closed)

    def test_stream_ocr_updates_and_final(self):
        stream = FakeStream([_chunk("```json\n"), _chunk('{"a":1}'), _chunk("\n```")])
        updates = []
        final = stream_ocr(
            PNG, OcrStyle.JSON, OcrMode.STRICT, CONFIG,
            on_update=updates.append, client=_client_returning(stream),
        )
        self.assertEqual(updates, ["", '{"a":1}', '{"a":1}'])
        self.assertEqual(final, '{"a":1}')

    def test_stream_ocr_empty_raises(self):
        stream = FakeStream([_chunk(None)])
        with self.assertRaises(OcrError):
            stream_ocr(PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG, client=_client_returning(stream))

    def test_mid_stream_error_wrapped(self):
        stream = FakeStream([_chunk("partial")], error=ConnectionError("reset"))
        updates = []
        with self.assertRaises(OcrError) as ctx:
            stream_ocr(
                PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG,
                on_update=updates.append, client=_client_returning(stream),
            )
        self.assertIn("reset", str(ctx.exception))
        self.assertEqual(updates, ["partial"])
        self.assertTrue(stream.closed)

    def test_stream_open_error_wrapped(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = TimeoutError("timed out")
        with self.assertRaises(OcrError):
            list(iter_fragments(PNG, OcrStyle.TEXT, OcrMode.STRICT, CONFIG, client=client))


if __name__ == "__main__":
    unittest.main()
