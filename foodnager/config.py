"""Configuration for the Foodnager recipe discovery engine."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# App directories
APP_NAME = "foodnager"
CONFIG_DIR = Path.home() / f".{APP_NAME}"
CATALOG_FILE = Path(os.getenv("FOODNAGER_CATALOG_FILE", str(CONFIG_DIR / "catalog.json")))

# External recipe API (tier 2)
EXTERNAL_API_URL = os.getenv("EXTERNAL_RECIPE_API_URL", "https://api.spoonacular.com")

# Bounds for the number of results a caller may request
MIN_RESULTS = 1
MAX_RESULTS = 50


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineSettings:
    """Tunable parameters of the discovery engine.

    Scores are in [0, 1]. A tier answers once any of its recipes reaches
    ``good_match_threshold``; a fuzzy product match needs at least
    ``fuzzy_match_threshold``.
    """

    good_match_threshold: float = 0.7
    fuzzy_match_threshold: float = 0.7
    max_fuzzy_candidates: int = 10
    default_max_results: int = 10
    external_recipe_limit: int = 3
    resolve_workers: int = 1


def load_settings() -> EngineSettings:
    """Build settings from environment variables, falling back to defaults."""
    defaults = EngineSettings()
    return EngineSettings(
        good_match_threshold=_env_float(
            "FOODNAGER_GOOD_MATCH_THRESHOLD", defaults.good_match_threshold
        ),
        fuzzy_match_threshold=_env_float(
            "FOODNAGER_FUZZY_MATCH_THRESHOLD", defaults.fuzzy_match_threshold
        ),
        max_fuzzy_candidates=_env_int(
            "FOODNAGER_MAX_FUZZY_CANDIDATES", defaults.max_fuzzy_candidates
        ),
        default_max_results=min(
            MAX_RESULTS,
            max(MIN_RESULTS, _env_int("FOODNAGER_MAX_RESULTS", defaults.default_max_results)),
        ),
        external_recipe_limit=_env_int(
            "FOODNAGER_EXTERNAL_RECIPE_LIMIT", defaults.external_recipe_limit
        ),
        resolve_workers=max(1, _env_int("FOODNAGER_RESOLVE_WORKERS", defaults.resolve_workers)),
    )


def get_external_api_key() -> str | None:
    """Get the external recipe API key from the environment."""
    return os.getenv("EXTERNAL_RECIPE_API_KEY") or None


def get_external_api_timeout() -> float:
    """Get the external recipe API timeout in seconds."""
    return _env_int("TIER2_TIMEOUT_MS", 10000) / 1000.0
