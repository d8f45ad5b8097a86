"""
Message catalogs for user-facing strings.

Catalogs live in ``locales/<lang>.json`` and are keyed ``<namespace>.<CODE>``.
Managers never build messages; they raise errors carrying a key and arguments
and the HTTP layer calls :func:`translate`.
"""
import json
import logging
import os
from typing import Dict, Optional

from flask import request, current_app

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ['pt-BR', 'en', 'es']
FALLBACK_LANGUAGE = 'pt-BR'

_LOCALES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'locales')
_catalogs: Dict[str, dict] = {}


def _load_catalog(lang: str) -> dict:
    if lang not in _catalogs:
        path = os.path.join(_LOCALES_DIR, f'{lang}.json')
        with open(path, 'r', encoding='utf-8') as f:
            _catalogs[lang] = json.load(f)
    return _catalogs[lang]


def _lookup(catalog: dict, key: str) -> Optional[str]:
    node = catalog
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


class _Args(dict):
    def __missing__(self, key):
        return '{' + key + '}'


def _format_arg(value):
    if isinstance(value, (list, tuple, set)):
        return ', '.join(str(v) for v in value)
    if value is None:
        return '∞'
    return value


def translate(key: str, lang: str = None, **args) -> str:
    """Render ``key`` in ``lang``, falling back to pt-BR and then to the key itself."""
    lang = lang if lang in SUPPORTED_LANGUAGES else FALLBACK_LANGUAGE
    template = _lookup(_load_catalog(lang), key)
    if template is None and lang != FALLBACK_LANGUAGE:
        template = _lookup(_load_catalog(FALLBACK_LANGUAGE), key)
    if template is None:
        logger.warning(f"Missing translation for {key}")
        return key
    return template.format_map(_Args({k: _format_arg(v) for k, v in args.items()}))


def resolve_language() -> str:
    """Pick the request language: ?lang=, then Accept-Language, then X-Lang."""
    lang = request.args.get('lang')
    if lang in SUPPORTED_LANGUAGES:
        return lang

    if request.accept_languages:
        best = request.accept_languages.best_match(SUPPORTED_LANGUAGES)
        if best:
            return best

    lang = request.headers.get('X-Lang')
    if lang in SUPPORTED_LANGUAGES:
        return lang

    return current_app.config.get('DEFAULT_LANGUAGE', FALLBACK_LANGUAGE)
