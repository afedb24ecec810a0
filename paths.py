"""Centralized filesystem paths for persistent data and templates."""

from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent

DATA_DIR = BASE_DIR / "data"
SETTINGS_PATH = DATA_DIR / "settings.json"
RESULTS_DIR = DATA_DIR / "results"

TEMPLATES_DIR = BASE_DIR / "templates"


def ensure_data_dirs() -> None:
    """Ensure required data directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
