"""Recognition result records and export to disk."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from prompts import OcrStyle, result_extension


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class OcrResult:
    text: str
    style: OcrStyle
    timestamp: int = field(default_factory=_now_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "style": self.style.value,
            "timestamp": self.timestamp,
            "filename": result_filename(self.style, self.timestamp),
        }


def result_filename(style: OcrStyle, timestamp_ms: int) -> str:
    return f"ocr-result-{timestamp_ms}.{result_extension(style)}"


def save_result(
    text: str,
    style: OcrStyle,
    out_dir: str | Path,
    timestamp_ms: int | None = None,
) -> Path:
    """Write result text to out_dir, named by timestamp with a style-specific extension."""
    output_dir = Path(out_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / result_filename(style, timestamp_ms if timestamp_ms is not None else _now_ms())
    tmp_path = out_path.with_suffix(out_path.suffix + ".tmp")
    try:
        with tmp_path.open("w", encoding="utf-8") as f:
            f.write(text)
        tmp_path.replace(out_path)
    except OSError:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass
        raise
    return out_path
