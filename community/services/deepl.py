"""DeepL translation provider.

Uses the DeepL v2 REST API. Requires DEEPL_API_KEY and optionally
DEEPL_API_URL / DEEPL_TIMEOUT environment variables.

Every public function fails open: a missing key, a network error or an
unexpected payload returns the input unchanged (or None for detection).
"""
import os
import logging
from functools import lru_cache

import requests

from community.constants.languages import (
    from_provider_code,
    to_provider_code,
)

logger = logging.getLogger(__name__)

MODEL_PROVIDER = 'deepl'
MODEL_VERSION = 'v2'

DEFAULT_API_URL = 'https://api-free.deepl.com'
DETECTION_SAMPLE_LENGTH = 200


class TranslationProviderError(Exception):
    """Raised internally when DeepL returns an unusable response."""


def _get_api_key() -> str:
    return os.environ.get('DEEPL_API_KEY', '').strip()


def _get_api_url() -> str:
    return os.environ.get('DEEPL_API_URL', DEFAULT_API_URL).rstrip('/')


def _get_timeout() -> float:
    try:
        return float(os.environ.get('DEEPL_TIMEOUT', 10))
    except ValueError:
        return 10.0


def is_translation_enabled() -> bool:
    """Check if the provider credential is configured."""
    return bool(_get_api_key())


@lru_cache(maxsize=None)
def _warn_missing_key(call_site: str) -> None:
    logger.error(f"DEEPL_API_KEY is not configured; {call_site} returns original text")


def _request_translations(texts: list[str], target_lang: str, source_lang: str | None = None) -> list[dict]:
    """POST a batch to /v2/translate and return the raw translation objects.

    Omitting ``source_lang`` lets DeepL auto-detect the source language.
    """
    body = {
        'text': texts,
        'target_lang': to_provider_code(target_lang, is_target=True),
    }
    if source_lang:
        body['source_lang'] = to_provider_code(source_lang, is_target=False)

    response = requests.post(
        f'{_get_api_url()}/v2/translate',
        headers={
            'Authorization': f'DeepL-Auth-Key {_get_api_key()}',
            'Content-Type': 'application/json',
        },
        json=body,
        timeout=_get_timeout(),
    )

    if not response.ok:
        raise TranslationProviderError(f"DeepL API error: {response.status_code} - {response.text[:200]}")

    data = response.json()
    translations = data.get('translations') if isinstance(data, dict) else None
    if not isinstance(translations, list):
        raise TranslationProviderError("DeepL unexpected response format")

    return translations


def translate_text(text: str, source_lang: str | None, target_lang: str) -> str:
    """Translate a single text. Returns the original text on any failure."""
    if not text or not text.strip():
        return text

    if not is_translation_enabled():
        _warn_missing_key('translate_text')
        return text

    try:
        translations = _request_translations([text], target_lang, source_lang)
        if translations and translations[0].get('text') is not None:
            return translations[0]['text']
        logger.warning("DeepL returned no translation for single text")
    except requests.Timeout:
        logger.warning("DeepL timeout")
    except Exception as e:
        logger.warning(f"DeepL translation error: {e}")

    return text


def translate_batch(texts: list[str], source_lang: str | None, target_lang: str) -> list[str]:
    """Translate many texts in one request.

    The result always has the same length and order as ``texts``. Empty or
    whitespace-only entries are not sent and come back unchanged. On any
    failure the whole input list is returned as-is.
    """
    texts = list(texts)
    if not texts:
        return []

    if not is_translation_enabled():
        _warn_missing_key('translate_batch')
        return texts

    # Keep track of non-empty positions so results can be put back in place
    non_empty_indices = [i for i, text in enumerate(texts) if text and text.strip()]
    if not non_empty_indices:
        return texts

    non_empty_texts = [texts[i] for i in non_empty_indices]

    try:
        translations = _request_translations(non_empty_texts, target_lang, source_lang)
        if len(translations) != len(non_empty_texts):
            logger.warning(
                f"DeepL returned {len(translations)} translations for {len(non_empty_texts)} texts"
            )
            return texts

        result = list(texts)
        for index, translation in zip(non_empty_indices, translations):
            translated = translation.get('text')
            if translated is not None:
                result[index] = translated
        return result
    except requests.Timeout:
        logger.warning("DeepL batch timeout")
    except Exception as e:
        logger.warning(f"DeepL batch translation error: {e}")

    return texts


def detect_language_via_translation(text: str) -> str | None:
    """Detect the language of ``text`` by asking DeepL to translate a sample.

    Returns a lowercase ISO 639-1 code, or None when detection is not
    possible. Callers should treat None as "assume the default language".
    """
    if not text or not text.strip():
        return None

    if not is_translation_enabled():
        _warn_missing_key('detect_language')
        return None

    try:
        # Target doesn't matter for detection
        translations = _request_translations([text[:DETECTION_SAMPLE_LENGTH]], 'en')
        if translations:
            detected = translations[0].get('detected_source_language')
            return from_provider_code(detected) if detected else None
    except Exception as e:
        logger.warning(f"DeepL language detection error: {e}")

    return None
