"""Persisted endpoint settings (base URL and model name)."""

from __future__ import annotations

import json
from pathlib import Path

SETTINGS_KEYS = ("base_url", "model")


class SettingsIOError(RuntimeError):
    """Raised when the settings file cannot be read or written."""


def load_settings(path: str | Path) -> dict[str, str]:
    """Return saved base_url/model; a missing file, unknown keys and blank values yield nothing."""
    file_path = Path(path)
    if not file_path.exists():
        return {}
    try:
        with file_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise SettingsIOError(
            f"Failed to parse JSON in '{path}'. Fix or delete the file and retry."
        ) from exc
    if not isinstance(payload, dict):
        raise SettingsIOError(f"Expected JSON object in '{path}'.")

    settings: dict[str, str] = {}
    for key in SETTINGS_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            settings[key] = value.strip()
    return settings


def save_settings(
    path: str | Path,
    base_url: str | None = None,
    model: str | None = None,
) -> dict[str, str]:
    """Merge non-empty values into the saved settings and return the stored dict.

    The file is replaced in one step, so a failed write leaves the old settings intact.
    """
    settings = load_settings(path)
    if base_url and base_url.strip():
        settings["base_url"] = base_url.strip().rstrip("/")
    if model and model.strip():
        settings["model"] = model.strip()

    file_path = Path(path)
    tmp_path = file_path.with_suffix(file_path.suffix + ".tmp")
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(settings, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        tmp_path.replace(file_path)
    except OSError as exc:
        if tmp_path.exists():
            tmp_path.unlink()
        raise SettingsIOError(f"Failed to write settings to '{path}'.") from exc
    return settings
