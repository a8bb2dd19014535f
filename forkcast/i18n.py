"""Locale message catalogs, loaded once at import."""

import json
import logging
from pathlib import Path

from forkcast.config import settings

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
FALLBACK_LOCALE = "en"


def load_catalogs(directory: Path = LOCALES_DIR) -> dict[str, dict]:
    """Read every <locale>.json file in directory."""
    catalogs = {}
    for path in sorted(directory.glob("*.json")):
        with path.open(encoding="utf-8") as f:
            catalogs[path.stem] = json.load(f)
    logger.debug(f"Loaded locale catalogs: {', '.join(catalogs)}")
    return catalogs


CATALOGS = load_catalogs()


def get_messages(locale: str | None) -> dict:
    """Catalog for locale, falling back to English, then the default locale."""
    for candidate in (locale, FALLBACK_LOCALE, settings.default_locale):
        if candidate and candidate in CATALOGS:
            return CATALOGS[candidate]
    return {}


def weather_condition_text(condition: str, locale: str | None) -> str:
    """Localized text for a weather condition code, or the code itself."""
    conditions = get_messages(locale).get("weather", {}).get("conditions", {})
    return conditions.get(condition) or conditions.get("unknown") or condition
