"""Centralize configuration and environment variables for OCR requests."""

from dotenv import load_dotenv
import os

from core.settings_store import load_settings
from paths import SETTINGS_PATH

DEFAULT_BASE_URL = "http://localhost:11434/v1"
DEFAULT_MODEL = "qwen3-vl:8b"
DEFAULT_API_KEY = "ollama"


def read_config(
    overrides: dict | None = None,
    settings_path=SETTINGS_PATH,
    include_saved: bool = True,
) -> dict:
    """Merge defaults, environment, saved settings and overrides without validating.

    Raises:
        SettingsIOError: If include_saved and the saved settings file is malformed.
    """
    load_dotenv()
    config = {
        "base_url": os.environ.get("OCR_BASE_URL", "").strip() or DEFAULT_BASE_URL,
        "model": os.environ.get("OCR_MODEL", "").strip() or DEFAULT_MODEL,
        "api_key": os.environ.get("OCR_API_KEY", "").strip() or DEFAULT_API_KEY,
    }
    if include_saved:
        config.update(load_settings(settings_path))
    for key, value in (overrides or {}).items():
        if value is not None and str(value).strip():
            config[key] = str(value).strip()
    config["base_url"] = config["base_url"].rstrip("/")
    return config


def load_config(overrides: dict | None = None, settings_path=SETTINGS_PATH) -> dict:
    """Load and validate endpoint configuration.

    Precedence (lowest first): built-in defaults, environment
    (OCR_BASE_URL, OCR_MODEL, OCR_API_KEY, read from .env when present),
    saved settings, then explicit overrides. Empty override values are
    ignored.

    Returns:
        dict: Configuration with keys 'base_url', 'model', 'api_key'.

    Raises:
        ValueError: If the base URL is not http(s) or the model is empty.
        SettingsIOError: If the saved settings file is malformed.
    """
    config = read_config(overrides, settings_path=settings_path)
    if not config["base_url"].startswith(("http://", "https://")):
        raise ValueError(
            f"Base URL must start with http:// or https:// (got '{config['base_url']}')."
        )
    if not config["model"]:
        raise ValueError("Model name is required. Set OCR_MODEL or save it in settings.")
    return config
