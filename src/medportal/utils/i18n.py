"""
Internationalization (i18n) helpers for user-facing error messages.

Translations live in ``medportal/locales/<lang>/LC_MESSAGES/messages.po``.
Compiled ``.mo`` catalogues are used through gettext when present; otherwise the
``.po`` file is parsed into an in-memory catalogue so messages are never shipped
as raw keys.
"""

from __future__ import annotations

import gettext
import os
from typing import Dict, Optional

from fastapi import Request

from medportal.core.config.settings import settings
from medportal.core.logging import logger

LOCALES_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "locales")

_translations: Dict[str, gettext.NullTranslations] = {}
_fallback_catalogs: Dict[str, Dict[str, str]] = {}


def _parse_po_file(po_path: str) -> Dict[str, str]:
    catalog: Dict[str, str] = {}
    current_msgid: Optional[str] = None
    with open(po_path, "r", encoding="utf-8") as po_file:
        for raw_line in po_file:
            line = raw_line.strip()
            if line.startswith("msgid "):
                current_msgid = line[6:].strip().strip('"')
            elif line.startswith("msgstr ") and current_msgid is not None:
                msgstr = line[7:].strip().strip('"')
                catalog[current_msgid] = msgstr or current_msgid
                current_msgid = None
    return catalog


def setup_i18n() -> None:
    """
    Load translations for every supported language.

    Raises:
        FileNotFoundError: If the locales directory is missing.
    """
    if not os.path.isdir(LOCALES_PATH):
        raise FileNotFoundError(f"Locales directory not found: {LOCALES_PATH}")

    for lang in settings.SUPPORTED_LANGUAGES:
        _translations[lang] = gettext.translation(
            domain="messages",
            localedir=LOCALES_PATH,
            languages=[lang],
            fallback=True,
        )
        po_path = os.path.join(LOCALES_PATH, lang, "LC_MESSAGES", "messages.po")
        _fallback_catalogs[lang] = _parse_po_file(po_path) if os.path.exists(po_path) else {}
        logger.debug("i18n_initialized", language=lang, entries=len(_fallback_catalogs[lang]))


def get_translated_message(key: str, locale: str = settings.DEFAULT_LANGUAGE) -> str:
    """
    Retrieve a translated message for the given key and locale.

    Unsupported locales fall back to the default language; unknown keys are
    returned unchanged.

    Args:
        key: The message key to translate.
        locale: The target language code.

    Returns:
        The translated message or the original key if no translation exists.
    """
    if not _translations:
        setup_i18n()

    if locale not in _translations:
        logger.debug("unsupported_locale_requested", requested_locale=locale)
        locale = settings.DEFAULT_LANGUAGE

    translation = _translations.get(locale)
    if translation is None:
        return key

    translated = translation.gettext(key)
    if translated == key:
        translated = _fallback_catalogs.get(locale, {}).get(key, key)
        if translated == key:
            logger.warning("translation_key_not_found", key=key, locale=locale)
    return translated


def get_request_language(request: Request) -> str:
    """
    Determine the preferred language from a request.

    Checks the ``lang`` query parameter, then the Accept-Language header, then
    falls back to the default language.
    """
    lang = request.query_params.get("lang")
    if lang and lang in settings.SUPPORTED_LANGUAGES:
        return lang

    accept_language = request.headers.get("Accept-Language", settings.DEFAULT_LANGUAGE)
    for lang in accept_language.split(","):
        lang = lang.split(";")[0].strip().split("-")[0]
        if lang in settings.SUPPORTED_LANGUAGES:
            return lang

    return settings.DEFAULT_LANGUAGE
