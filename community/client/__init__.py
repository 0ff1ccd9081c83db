"""Client runtime for live page translation.

Mirrors what runs in the browser: a two-tier translation cache, a batching
translator that talks to ``/api/translate``, the language preference state
and the DOM mutation translator that drives them.
"""

from community.client.cache import ClientTranslationCache, MemoryStorage, RedisStorage
from community.client.api import TranslationAPIClient, TranslationAPIError, TranslationFallback
from community.client.batcher import BatchingTranslator
from community.client.preferences import LanguagePreference
from community.client.dom import Document, Element, Text, MutationObserver
from community.client.translator import GlobalTranslator, TranslatorState

__all__ = [
    'ClientTranslationCache',
    'MemoryStorage',
    'RedisStorage',
    'TranslationAPIClient',
    'TranslationAPIError',
    'TranslationFallback',
    'BatchingTranslator',
    'LanguagePreference',
    'Document',
    'Element',
    'Text',
    'MutationObserver',
    'GlobalTranslator',
    'TranslatorState',
]
