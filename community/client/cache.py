"""Client-side translation cache.

Two tiers:
1. In-memory dict (fastest, lost when the session ends)
2. A persistent per-browser store (memory-backed or Redis)

Keys are ``sha256(text + "||" + target_lang)``; the delimiter keeps texts
that end in a language code from colliding with other pairs. Bump
CACHE_VERSION to invalidate everything already stored.
"""

import hashlib
import logging

from community.services.redis_client import get_redis

logger = logging.getLogger(__name__)

CACHE_PREFIX = 'deepl_cache_'
CACHE_VERSION = 'v1'


class StorageQuotaExceeded(Exception):
    """Raised by a storage backend that has no room for another entry."""


def generate_cache_key(text, target_lang):
    digest = hashlib.sha256(f'{text}||{target_lang}'.encode('utf-8')).hexdigest()
    return f'{CACHE_VERSION}_{digest[:32]}'


class MemoryStorage:
    """Dict-backed key/value store with an optional entry quota."""

    def __init__(self, quota=None):
        self._items = {}
        self.quota = quota

    def get_item(self, key):
        return self._items.get(key)

    def set_item(self, key, value):
        if self.quota is not None and key not in self._items and len(self._items) >= self.quota:
            raise StorageQuotaExceeded(f'Storage quota of {self.quota} entries exceeded')
        self._items[key] = value

    def remove_item(self, key):
        self._items.pop(key, None)

    def keys(self):
        return list(self._items)


class RedisStorage:
    """Key/value store on the shared Redis connection."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_redis()
        if self._client is None:
            raise ConnectionError('Redis is not available')
        return self._client

    def get_item(self, key):
        return self.client.get(key)

    def set_item(self, key, value):
        self.client.set(key, value)

    def remove_item(self, key):
        self.client.delete(key)

    def keys(self):
        return list(self.client.scan_iter(match='*'))


class ClientTranslationCache:
    """Read-through cache: memory first, then the persistent store."""

    def __init__(self, storage=None):
        self.storage = storage
        self._memory = {}

    def get(self, text, target_lang):
        """Return the cached translation or None."""
        key = generate_cache_key(text, target_lang)

        if key in self._memory:
            return self._memory[key]

        if self.storage is not None:
            try:
                stored = self.storage.get_item(CACHE_PREFIX + key)
            except Exception as e:
                logger.debug(f"Persistent cache read failed: {e}")
                return None
            if stored is not None:
                # Promote to memory for faster subsequent access
                self._memory[key] = stored
                return stored

        return None

    def set(self, text, target_lang, translation):
        """Store in both tiers; the memory write always sticks."""
        key = generate_cache_key(text, target_lang)
        self._memory[key] = translation

        if self.storage is not None:
            try:
                self.storage.set_item(CACHE_PREFIX + key, translation)
            except Exception as e:
                # Full or unavailable store; memory tier still works
                logger.debug(f"Persistent cache write failed: {e}")

    def has(self, text, target_lang):
        return self.get(text, target_lang) is not None

    def get_batch(self, texts, target_lang):
        """Map each text to its cached translation (None when absent)."""
        return {text: self.get(text, target_lang) for text in texts}

    def set_batch(self, items):
        """Store (text, target_lang, translation) triples."""
        for text, target_lang, translation in items:
            self.set(text, target_lang, translation)

    def clear(self):
        """Drop every cached translation, leaving foreign storage keys alone."""
        self._memory.clear()

        if self.storage is not None:
            try:
                for key in self.storage.keys():
                    if key.startswith(CACHE_PREFIX):
                        self.storage.remove_item(key)
            except Exception as e:
                logger.debug(f"Persistent cache clear failed: {e}")

    def stats(self):
        persistent_size = 0
        if self.storage is not None:
            try:
                persistent_size = sum(1 for key in self.storage.keys() if key.startswith(CACHE_PREFIX))
            except Exception as e:
                logger.debug(f"Persistent cache stats failed: {e}")

        return {
            'memory_size': len(self._memory),
            'persistent_size': persistent_size,
        }
