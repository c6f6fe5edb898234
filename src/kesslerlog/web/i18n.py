"""UI text catalogs.

Catalogs live in ``i18n/<lang>.json`` as nested objects addressed with dotted
keys (``"stats.no_status"``). Portuguese is the reference catalog: a key
missing from another language falls back to it, and a key missing everywhere
renders as the key itself so gaps show up on screen.

Service messages are not translated here; they are produced in Portuguese by
the services.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CATALOG_DIR = Path(__file__).parent / "i18n"

SUPPORTED_LANGUAGES = {
    "pt": "Português",
    "en": "English",
}

DEFAULT_LANGUAGE = "pt"

_catalogs: dict[str, dict[str, Any]] = {}


def load_translations(language: str) -> dict[str, Any]:
    """The catalog for ``language`` (unsupported codes get the default one)."""
    if language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE
    if language not in _catalogs:
        path = CATALOG_DIR / f"{language}.json"
        try:
            _catalogs[language] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not load catalog %s: %s", path, e)
            return {}
    return _catalogs[language]


def _lookup(catalog: dict[str, Any], key: str) -> str | None:
    node: Any = catalog
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def get_text(key: str, language: str = DEFAULT_LANGUAGE, **kwargs) -> str:
    """Text for a dotted ``key``, formatted with ``kwargs`` when given."""
    text = _lookup(load_translations(language), key)
    if text is None and language != DEFAULT_LANGUAGE:
        text = _lookup(load_translations(DEFAULT_LANGUAGE), key)
    if text is None:
        return key
    if not kwargs:
        return text
    try:
        return text.format(**kwargs)
    except (KeyError, IndexError):
        logger.warning("Bad placeholders for %s: %s", key, sorted(kwargs))
        return text


def get_current_language() -> str:
    """Display language from ``DISPLAY_LANGUAGE``, defaulting to Portuguese."""
    lang = os.getenv("DISPLAY_LANGUAGE", DEFAULT_LANGUAGE)
    return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def no_status_label(language: str | None = None) -> str:
    """Label for cycles without a status in the status breakdown."""
    return get_text("stats.no_status", language or get_current_language())
