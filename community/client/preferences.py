"""Language preference state for one browser session.

Holds the current language, the busy flag and a version counter that
changes whenever a full re-translation is required. Local persistence is
authoritative; syncing to the user profile is best-effort.
"""

import asyncio
import inspect
import logging

from community.constants.languages import DEFAULT_LANGUAGE, is_supported, normalize_language

logger = logging.getLogger(__name__)

STORAGE_KEY = 'preferred_language'


class LanguagePreference:

    def __init__(self, storage=None, server_language=None, browser_language=None, profile_sync=None):
        self.storage = storage
        self.profile_sync = profile_sync
        self.is_translating = False
        self.translation_version = 0
        self._listeners = []
        self._sync_tasks = set()

        self.current_language = self._initial_language(server_language, browser_language)
        self._persist(self.current_language)

    def _initial_language(self, server_language, browser_language):
        """Priority: server value > stored value > browser locale > default."""
        if server_language and is_supported(server_language):
            return normalize_language(server_language)

        stored = self._read_stored()
        if stored and is_supported(stored):
            return normalize_language(stored)

        if browser_language and is_supported(browser_language):
            return normalize_language(browser_language)

        return DEFAULT_LANGUAGE

    def _read_stored(self):
        if self.storage is None:
            return None
        try:
            return self.storage.get_item(STORAGE_KEY)
        except Exception as e:
            logger.debug(f"Could not read stored language: {e}")
            return None

    def _persist(self, language):
        if self.storage is None:
            return
        try:
            self.storage.set_item(STORAGE_KEY, language)
        except Exception as e:
            logger.debug(f"Could not persist language: {e}")

    @property
    def should_translate(self):
        return self.current_language != DEFAULT_LANGUAGE

    def set_language(self, code):
        """Switch language. Unsupported codes fall back to the default."""
        normalized = normalize_language(code)

        if not is_supported(normalized):
            logger.warning(f"Language '{code}' is not supported, defaulting to {DEFAULT_LANGUAGE}")
            normalized = DEFAULT_LANGUAGE

        if normalized == self.current_language:
            return

        self.current_language = normalized
        self._persist(normalized)
        self._sync_to_profile(normalized)
        self.translation_version += 1
        self._notify()

    def trigger_retranslation(self):
        """Force a full re-scan without changing the language."""
        self.translation_version += 1
        self._notify()

    def set_is_translating(self, value):
        self.is_translating = bool(value)

    def subscribe(self, listener):
        """Call ``listener(preference)`` after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Language listener failed: {e}")

    def _sync_to_profile(self, language):
        if self.profile_sync is None:
            return

        try:
            result = self.profile_sync(language)
            if not inspect.isawaitable(result):
                return

            try:
                asyncio.get_running_loop()
            except RuntimeError:
                asyncio.run(result)
                return

            task = asyncio.ensure_future(result)
            self._sync_tasks.add(task)
            task.add_done_callback(self._sync_done)
        except Exception as e:
            # Silent fail - local storage is the primary persistence
            logger.debug(f"Could not sync language to profile: {e}")

    def _sync_done(self, task):
        self._sync_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Could not sync language to profile: {task.exception()}")
