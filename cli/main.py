"""Command-line entry point: recognize one image, or serve the browser UI."""

import argparse
import os
import sys
import traceback
from pathlib import Path

from config import load_config
from core.results import save_result
from core.settings_store import SettingsIOError, save_settings
from ocr_service import OcrError, load_image, perform_ocr, stream_ocr
from paths import SETTINGS_PATH, ensure_data_dirs
from prompts import OCR_OPTIONS, OcrMode, parse_mode, parse_style


def recognize_file(
    image_path: str,
    style: str,
    mode: str,
    config: dict,
    stream: bool = False,
    page: int = 0,
    out_dir: str | None = None,
    verbose: bool = False,
) -> dict:
    """
    Run OCR for one file and return a result dict.

    Keys: status ("success" | "failed"), text, error, saved_path.
    """
    result = {"status": "failed", "text": None, "error": None, "saved_path": None}
    try:
        ocr_style = parse_style(style)
        ocr_mode = parse_mode(mode)
        payload = load_image(image_path, page=page)
    except (ValueError, FileNotFoundError, OcrError) as e:
        result["error"] = str(e)
        _print_debug_exception("load", e, image_path, verbose)
        return result

    print(f"  → Recognizing {Path(image_path).name} (style={ocr_style.value}, mode={ocr_mode.value}, model={config['model']})", file=sys.stderr)
    try:
        if stream:
            text = stream_ocr(payload, ocr_style, ocr_mode, config, on_update=_progress_printer())
            print(file=sys.stderr)
        else:
            text = perform_ocr(payload, ocr_style, ocr_mode, config)
    except OcrError as e:
        result["error"] = str(e)
        _print_debug_exception("request", e, image_path, verbose)
        return result

    result["status"] = "success"
    result["text"] = text
    if out_dir:
        try:
            result["saved_path"] = str(save_result(text, ocr_style, out_dir))
        except OSError as e:
            result["error"] = f"Failed to save result: {e}"
            _print_debug_exception("save", e, image_path, verbose)
    return result


def _progress_printer():
    """Return an on_update callback that rewrites a single stderr status line."""

    def on_update(display: str) -> None:
        print(f"\r  → receiving... {len(display)} chars", end="", file=sys.stderr, flush=True)

    return on_update


def _print_debug_exception(stage: str, error: Exception, image_path: str, verbose: bool) -> None:
    """Print traceback details only when verbose debugging is enabled."""
    if not verbose:
        return
    print(f"\n[DEBUG] recognize_file path={image_path} stage={stage}: {error}", file=sys.stderr)
    traceback.print_exc()


def _serve(host: str, port: int) -> None:
    import uvicorn

    from core.api import app

    uvicorn.run(app, host=host, port=port)


def main() -> None:
    """Entry point with CLI argument parsing."""
    style_help = ", ".join(f"{o.id.value}={o.label}" for o in OCR_OPTIONS)
    parser = argparse.ArgumentParser(
        description="Omni-OCR - extract text from images with a vision chat model"
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--file", type=str, help="Image (or PDF) to recognize")
    group.add_argument("--serve", action="store_true", help="Run the browser UI")
    parser.add_argument("--style", default="t", help=f"Recognition style ({style_help})")
    parser.add_argument(
        "--mode",
        default=OcrMode.STRICT.value,
        help="Recognition mode (strict, enhance)",
    )
    parser.add_argument("--stream", action="store_true", help="Stream the response and show progress")
    parser.add_argument("--page", type=int, default=1, help="PDF page to recognize (1-based)")
    parser.add_argument("--base-url", type=str, help="OpenAI-compatible endpoint, e.g. http://localhost:11434/v1")
    parser.add_argument("--model", type=str, help="Vision model name, e.g. qwen3-vl:8b")
    parser.add_argument(
        "--save-settings",
        action="store_true",
        help="Persist --base-url/--model as the new defaults",
    )
    parser.add_argument("--out", type=str, help="Directory to save the result file into")
    parser.add_argument("--host", default=os.environ.get("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")))
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print caught exceptions and full tracebacks for debugging.",
    )
    args = parser.parse_args()

    ensure_data_dirs()
    try:
        config = load_config(
            {"base_url": args.base_url, "model": args.model},
            settings_path=SETTINGS_PATH,
        )
    except (ValueError, SettingsIOError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.save_settings:
        try:
            saved = save_settings(SETTINGS_PATH, base_url=args.base_url, model=args.model)
        except SettingsIOError as e:
            print(f"Settings error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"  → Saved settings: {saved}", file=sys.stderr)

    if args.serve:
        _serve(args.host, args.port)
        return

    result = recognize_file(
        args.file,
        args.style,
        args.mode,
        config,
        stream=args.stream,
        page=args.page - 1,
        out_dir=args.out,
        verbose=args.verbose,
    )
    if result["status"] == "failed":
        print(f"Recognition failed: {result['error']}", file=sys.stderr)
        sys.exit(1)
    print(result["text"])
    if result["saved_path"]:
        print(f"  Saved to {result['saved_path']}", file=sys.stderr)
    elif result["error"]:
        print(result["error"], file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
