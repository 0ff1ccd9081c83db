"""Batching translator.

Collects single-text requests for a short window and sends them to the
translate endpoint together. Every caller is always settled: with the
translation, or with its own text when the provider fails or skips it.
"""

import asyncio
import logging
from dataclasses import dataclass

from community.constants.languages import DEFAULT_LANGUAGE, same_base_language

logger = logging.getLogger(__name__)

BATCH_DELAY = 0.05  # seconds to wait before sending a batch
MAX_BATCH_SIZE = 50  # texts per API call


@dataclass
class QueuedRequest:
    text: str
    target_lang: str
    future: asyncio.Future


def _is_blank(text):
    return not text or not text.strip()


class BatchingTranslator:
    """Debounced, chunked front end for ``fetch(texts, target, source=None)``.

    ``fetch`` is a coroutine function returning translations in input order,
    e.g. ``TranslationAPIClient.fetch_translations``.
    """

    def __init__(self, fetch, cache, batch_delay=BATCH_DELAY, max_batch_size=MAX_BATCH_SIZE):
        self.fetch = fetch
        self.cache = cache
        self.batch_delay = batch_delay
        self.max_batch_size = max_batch_size

        self._queue = []
        self._flush_handle = None
        self._flush_tasks = set()
        self._active = 0

    @property
    def busy(self):
        """True while requests are queued or any batch is in flight."""
        return bool(self._queue) or self._flush_handle is not None or self._active > 0

    async def translate(self, text, target_lang, source_lang=DEFAULT_LANGUAGE):
        """Translate one text, coalescing with other callers in the same window."""
        if _is_blank(text):
            return text

        if source_lang and same_base_language(source_lang, target_lang):
            return text

        cached = self.cache.get(text, target_lang)
        if cached is not None:
            return cached

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append(QueuedRequest(text, target_lang, future))
        self._schedule_flush(loop)
        return await future

    def _schedule_flush(self, loop):
        if self._flush_handle is not None:
            return  # Already scheduled
        self._flush_handle = loop.call_later(self.batch_delay, self._start_flush)

    def _start_flush(self):
        self._flush_handle = None
        task = asyncio.ensure_future(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self):
        """Send everything queued so far.

        The queue is swapped out first, so requests arriving while this
        flush is in flight wait for the next cycle.
        """
        requests, self._queue = self._queue, []
        if not requests:
            return

        self._active += 1
        try:
            by_language = {}
            for request in requests:
                by_language.setdefault(request.target_lang, []).append(request)

            chunks = []
            for target_lang, group in by_language.items():
                # Duplicate texts share one slot; every waiter still settles
                waiters = {}
                for request in group:
                    waiters.setdefault(request.text, []).append(request)

                unique_texts = list(waiters)
                for start in range(0, len(unique_texts), self.max_batch_size):
                    chunk = unique_texts[start:start + self.max_batch_size]
                    chunks.append(self._send_chunk(chunk, target_lang, waiters))

            await asyncio.gather(*chunks)
        finally:
            self._active -= 1
            # Nothing may stay pending, whatever happened above
            for request in requests:
                if not request.future.done():
                    request.future.set_result(request.text)

    async def _send_chunk(self, texts, target_lang, waiters):
        try:
            translations = await self.fetch(texts, target_lang)
        except Exception as e:
            logger.warning(f"Batch translation to {target_lang} failed: {e}")
            translations = None

        cache_items = []
        for index, text in enumerate(texts):
            translation = text
            if translations is not None and index < len(translations) and translations[index]:
                translation = translations[index]
                cache_items.append((text, target_lang, translation))

            for request in waiters[text]:
                if not request.future.done():
                    request.future.set_result(translation)

        self.cache.set_batch(cache_items)

    async def translate_batch(self, texts, target_lang, source_lang=None):
        """Translate a list at once (whole-page scans).

        Cached texts are served locally; the rest go out in chunks. Output
        has the same length and order as ``texts``; blank entries pass
        through untouched. On failure the input comes back unchanged.
        """
        texts = list(texts)
        if not texts:
            return []

        # Only skip if the source is known and matches the target
        if source_lang and same_base_language(source_lang, target_lang):
            return texts

        cached = self.cache.get_batch(texts, target_lang)
        to_translate = []
        seen = set()
        for text in texts:
            if _is_blank(text) or cached.get(text) is not None or text in seen:
                continue
            seen.add(text)
            to_translate.append(text)

        results = {text: value for text, value in cached.items() if value is not None}

        if to_translate:
            self._active += 1
            try:
                chunks = [
                    to_translate[start:start + self.max_batch_size]
                    for start in range(0, len(to_translate), self.max_batch_size)
                ]
                responses = await asyncio.gather(
                    *(self.fetch(chunk, target_lang, source_lang) for chunk in chunks)
                )
            except Exception as e:
                logger.error(f"Batch translation failed: {e}")
                return texts
            finally:
                self._active -= 1

            cache_items = []
            for chunk, translations in zip(chunks, responses):
                for text, translation in zip(chunk, translations or []):
                    if translation:
                        results[text] = translation
                        cache_items.append((text, target_lang, translation))
            self.cache.set_batch(cache_items)

        return [text if _is_blank(text) else results.get(text, text) for text in texts]

    async def preload(self, texts, target_lang):
        """Warm the cache with known UI strings."""
        if same_base_language(target_lang, DEFAULT_LANGUAGE):
            return

        uncached = [text for text in texts if self.cache.get(text, target_lang) is None]
        if uncached:
            await self.translate_batch(uncached, target_lang)
