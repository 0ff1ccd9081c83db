"""HTTP client for the translation and language preference endpoints."""

import asyncio
import functools
import logging

import requests

from community.constants.languages import to_provider_code

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


class TranslationAPIError(Exception):
    """The translate endpoint failed."""


class TranslationFallback(TranslationAPIError):
    """The endpoint failed but sent the original texts back.

    ``translations`` holds those texts; they are not translations and must
    not be cached as such.
    """

    def __init__(self, message, translations):
        super().__init__(message)
        self.translations = translations


class TranslationAPIClient:
    """Talks to ``/api/translate`` and ``/api/user/language``."""

    def __init__(self, base_url='', session=None, timeout=DEFAULT_TIMEOUT, token=None):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token = token

    def _headers(self):
        headers = {'Content-Type': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def post_translations(self, texts, target_lang, source_lang=None):
        """POST a batch and return the translations in input order.

        Omitting source_lang lets the provider auto-detect it. Error bodies
        flagged ``fallback`` raise TranslationFallback carrying the original
        texts.
        """
        body = {
            'texts': list(texts),
            'targetLang': to_provider_code(target_lang, is_target=True),
        }
        if source_lang:
            body['sourceLang'] = to_provider_code(source_lang, is_target=False)

        try:
            response = self.session.post(
                f'{self.base_url}/api/translate',
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TranslationAPIError(f'Translation request failed: {e}') from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            raise TranslationAPIError(f'Translation API error: {response.status_code}')

        if data.get('fallback') and isinstance(data.get('translations'), list):
            raise TranslationFallback(
                data.get('error') or f'Translation API error: {response.status_code}',
                data['translations'],
            )

        if not response.ok or data.get('error'):
            raise TranslationAPIError(data.get('error') or f'Translation API error: {response.status_code}')

        translations = data.get('translations')
        if not isinstance(translations, list):
            return list(texts)
        return translations

    async def fetch_translations(self, texts, target_lang, source_lang=None):
        """Async wrapper running the blocking request in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, functools.partial(self.post_translations, texts, target_lang, source_lang)
        )

    def save_language(self, language_code):
        """Store the language in the caller's profile. Returns True when saved."""
        try:
            response = self.session.post(
                f'{self.base_url}/api/user/language',
                json={'languageCode': language_code},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.debug(f"Could not sync language to profile: {e}")
            return False

        if not response.ok:
            logger.debug(f"Could not sync language to profile: {response.status_code}")
            return False

        try:
            return bool(response.json().get('saved'))
        except ValueError:
            return False

    async def sync_language(self, language_code):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.save_language, language_code)
