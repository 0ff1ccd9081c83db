"""Global DOM translator.

Watches the live document and rewrites rendered text into the reader's
language through the batching translator.

Content exclusions:
Mark an element with ``data-no-translate`` (or the ``notranslate`` class)
to leave it and its descendants alone, e.g. usernames, raw URLs, code
samples and brand names:

    <span data-no-translate>@johndoe</span>

Script, style, code, pre, kbd, samp, var, textarea, input, noscript,
iframe, svg and math elements are skipped automatically, as is editable
content.

The translator is a secondary writer: the rendering layer owns the tree.
Every write it makes is flagged so the observer ignores the mutation it
causes exactly once; without that the page would translate forever.
"""

import asyncio
import enum
import logging
import re
import unicodedata
from dataclasses import dataclass

from community.client.dom import ATTRIBUTES, CHARACTER_DATA, CHILD_LIST, Element, MutationObserver, Text
from community.constants.languages import DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)

TRANSLATABLE_ATTRS = (
    'placeholder',
    'title',
    'aria-label',
    'aria-placeholder',
    'aria-description',
    'alt',
)

SKIP_ELEMENTS = frozenset({
    'SCRIPT', 'STYLE', 'CODE', 'PRE', 'KBD', 'SAMP', 'VAR',
    'TEXTAREA', 'INPUT', 'NOSCRIPT', 'IFRAME', 'SVG', 'MATH',
})

NO_TRANSLATE_ATTR = 'data-no-translate'
NO_TRANSLATE_CLASS = 'notranslate'
TRANSLATED_CLASS = 'translated'
ORIGINAL_TEXT_ATTR = 'data-original-text'

# Skip very short strings
MIN_TEXT_LENGTH = 2

INITIAL_RESCAN_DELAY = 0.2
SWITCH_RESCAN_DELAY = 0.05
ROUTE_RESCAN_DELAY = 0.1
MUTATION_DEBOUNCE = 0.01

URL_PATTERN = re.compile(r'^(https?://|www\.)')
EMAIL_PATTERN = re.compile(r'^[\w.-]+@[\w.-]+\.\w+$')

TEXT_KEY = '#text'
CHILDREN_KEY = '#children'


def original_attr_name(attribute):
    return f'data-original-{attribute}'


def _is_symbol_like(char):
    return char.isspace() or unicodedata.category(char)[0] in ('P', 'S') or unicodedata.category(char) == 'Nd'


def is_translatable_text(text):
    """True for text worth sending to the translator."""
    if not text:
        return False

    trimmed = text.strip()
    if len(trimmed) < MIN_TEXT_LENGTH:
        return False

    # Only numbers, punctuation or symbols
    if all(_is_symbol_like(char) for char in trimmed):
        return False

    if URL_PATTERN.match(trimmed):
        return False

    if EMAIL_PATTERN.match(trimmed):
        return False

    return True


class TargetKind(enum.Enum):
    TEXT = 'text'
    ATTRIBUTE = 'attribute'


@dataclass
class TranslationTarget:
    kind: TargetKind
    node: object
    original_text: str
    attribute: str = None
    seen_value: str = None

    @property
    def key(self):
        return (self.node.node_id, self.attribute or TEXT_KEY)


class TranslatorState(enum.Enum):
    IDLE = 'idle'
    REVERTING = 'reverting'
    SCANNING_FRESH = 'scanning_fresh'
    RESETTING_AND_RESCANNING = 'resetting_and_rescanning'
    SCANNING_FROM_DEFAULT = 'scanning_from_default'
    RESCANNING = 'rescanning'


def decide_transition(previous, current, first_activation, version_changed=False):
    """Pick the action for a language change.

    | previous -> current        | state                    |
    |----------------------------|--------------------------|
    | first activation, default  | IDLE                     |
    | any -> default             | REVERTING                |
    | first activation, other    | SCANNING_FRESH           |
    | A -> A, version bumped     | RESCANNING               |
    | A -> A                     | IDLE                     |
    | default -> other           | SCANNING_FROM_DEFAULT    |
    | A -> B                     | RESETTING_AND_RESCANNING |
    """
    if current == DEFAULT_LANGUAGE:
        if first_activation or previous == DEFAULT_LANGUAGE:
            return TranslatorState.IDLE
        return TranslatorState.REVERTING

    if first_activation:
        return TranslatorState.SCANNING_FRESH

    if previous == current:
        return TranslatorState.RESCANNING if version_changed else TranslatorState.IDLE

    if previous == DEFAULT_LANGUAGE:
        return TranslatorState.SCANNING_FROM_DEFAULT

    return TranslatorState.RESETTING_AND_RESCANNING


def _live_value(node, attribute=None):
    if attribute is not None:
        return node.get_attribute(attribute)
    if isinstance(node, Text):
        return node.data
    return node.text_content


def _mutation_key(node, attribute=None):
    """Key of the record a write to ``node`` will produce."""
    if attribute is not None:
        return (node.node_id, attribute)
    if isinstance(node, Text):
        return (node.node_id, TEXT_KEY)
    return (node.node_id, CHILDREN_KEY)


def _record_key(record):
    if record.type == CHARACTER_DATA:
        return (record.target.node_id, TEXT_KEY)
    if record.type == ATTRIBUTES:
        return (record.target.node_id, record.attribute_name)
    return (record.target.node_id, CHILDREN_KEY)


def _single_text_child(element):
    if len(element.children) == 1 and isinstance(element.children[0], Text):
        return element.children[0]
    return None


class GlobalTranslator:
    """Translates a live document and keeps it translated.

    One instance per page session. All bookkeeping lives in side tables
    keyed by ``node_id`` and is evicted when nodes leave the document.
    """

    def __init__(self, document, preferences, batcher, cache=None, root=None):
        self.document = document
        self.preferences = preferences
        self.batcher = batcher
        self.cache = cache if cache is not None else batcher.cache
        self.root = root if root is not None else document.body
        self.state = TranslatorState.IDLE

        # (node_id, kind) -> language the node was translated into
        self._translated = {}
        # (node_id, kind) -> value we last wrote
        self._last_written = {}
        # node_id -> (node, original text) for text targets
        self._originals = {}
        # One-shot "this mutation was ours" flags, keyed like records
        self._self_caused = set()

        self._pending = []
        self._queued = set()
        self._processing = False
        self._generation = 0

        self._loop = None
        self._observer = None
        self._unsubscribe = None
        self._debounce_handle = None
        self._route_handle = None
        self._timers = set()
        self._tasks = set()

        self._previous_language = preferences.current_language
        self._previous_version = preferences.translation_version
        self._first_activation = True

    @property
    def current_language(self):
        return self.preferences.current_language

    @property
    def should_translate(self):
        return self.current_language != DEFAULT_LANGUAGE

    @property
    def idle(self):
        return (
            not self._timers
            and self._debounce_handle is None
            and self._route_handle is None
            and not self._processing
            and not self._pending
            and not self.batcher.busy
            and not self.document.has_pending_mutations
        )

    # Lifecycle

    def start(self):
        """Observe the document and apply the current language. Needs a running loop."""
        self._loop = asyncio.get_running_loop()

        self._observer = MutationObserver(self.handle_mutations)
        self._observer.observe(
            self.root,
            child_list=True,
            subtree=True,
            character_data=True,
            attributes=True,
            attribute_filter=list(TRANSLATABLE_ATTRS),
        )
        self._unsubscribe = self.preferences.subscribe(self._on_preference_change)
        self._on_preference_change(self.preferences)

    def stop(self):
        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        self._cancel_handle('_debounce_handle')
        self._cancel_handle('_route_handle')
        # An apply still in flight must not write into a document we no longer watch
        for task in list(self._tasks):
            task.cancel()
        self._pending = []
        self._queued.clear()
        self._self_caused.clear()

    async def wait_idle(self, timeout=5.0):
        """Wait until no scan, batch or mutation delivery is outstanding."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self.idle:
            if loop.time() > deadline:
                raise asyncio.TimeoutError('Translator did not become idle')
            await asyncio.sleep(0.005)

    def _cancel_handle(self, name):
        handle = getattr(self, name)
        if handle is not None:
            handle.cancel()
            setattr(self, name, None)

    def _later(self, delay, callback):
        handle = None

        def fire():
            self._timers.discard(handle)
            callback()

        handle = self._loop.call_later(delay, fire)
        self._timers.add(handle)
        return handle

    # Language transitions

    def _on_preference_change(self, preferences):
        current = preferences.current_language
        version = preferences.translation_version
        state = decide_transition(
            self._previous_language,
            current,
            self._first_activation,
            version_changed=version != self._previous_version,
        )

        self._previous_language = current
        self._previous_version = version
        self._first_activation = False

        logger.debug(f"Language transition -> {current}: {state.value}")
        self._run_transition(state)

    def _run_transition(self, state):
        self.state = state
        if state is TranslatorState.IDLE:
            return

        # Anything still queued or in flight belongs to the old language
        self._generation += 1
        self._pending = []
        self._queued.clear()

        if state is TranslatorState.REVERTING:
            self.revert_translations()
        elif state is TranslatorState.SCANNING_FRESH:
            # First scan on the next loop turn, a second one for late content
            self._later(0, self._initial_scan)
        elif state is TranslatorState.RESETTING_AND_RESCANNING:
            self.reset_to_original()
            self._later(SWITCH_RESCAN_DELAY, self.scan_full_page)
        else:
            self.scan_full_page()

    def _initial_scan(self):
        self.scan_full_page()
        self._later(INITIAL_RESCAN_DELAY, self.scan_full_page)

    def on_route_change(self, path=None):
        """Re-scan after navigation; persistent layouts may swap whole subtrees."""
        self._cancel_handle('_route_handle')

        def rescan():
            self._route_handle = None
            if self.should_translate:
                logger.debug(f"Route changed to {path}, re-scanning")
                self.scan_full_page()

        self._route_handle = self._loop.call_later(ROUTE_RESCAN_DELAY, rescan)

    # Extraction

    def _should_skip_element(self, element):
        if element.tag_name in SKIP_ELEMENTS:
            return True
        if element.has_attribute(NO_TRANSLATE_ATTR):
            return True
        if element.has_class(NO_TRANSLATE_CLASS):
            return True
        editable = element.get_attribute('contenteditable')
        if editable is not None and editable.lower() != 'false':
            return True
        return False

    def _in_scope(self, node):
        return node is self.root or node.is_descendant_of(self.root)

    def _is_excluded(self, node):
        """True when the node or any ancestor opts out of translation."""
        if isinstance(node, Element) and self._should_skip_element(node):
            return True
        return any(self._should_skip_element(ancestor) for ancestor in node.ancestors())

    def _original_text(self, node):
        entry = self._originals.get(node.node_id)
        if entry is not None:
            return entry[1]

        # Marker left on the parent by an earlier write
        holder = node.parent if isinstance(node, Text) else node
        if not isinstance(holder, Element) or not holder.has_attribute(ORIGINAL_TEXT_ATTR):
            return None
        if holder is not node and _single_text_child(holder) is not node:
            return None

        marker = holder.get_attribute(ORIGINAL_TEXT_ATTR)
        live = _live_value(node)
        # A stale marker is ignored once the renderer shows new content
        if live == marker or self.cache.get(marker, self.current_language) == live:
            return marker
        return None

    def _already_translated(self, node, attribute, language):
        key = (node.node_id, attribute or TEXT_KEY)
        return (
            self._translated.get(key) == language
            and _live_value(node, attribute) == self._last_written.get(key)
        )

    def extract_targets(self, root):
        """Find every translatable text node and attribute under ``root``."""
        if self._is_excluded(root):
            return []

        language = self.current_language
        targets = []
        seen = set()

        def add(target):
            if target.key not in seen:
                seen.add(target.key)
                targets.append(target)

        stack = [root]
        while stack:
            node = stack.pop()

            if isinstance(node, Text):
                self._collect_text(node, language, add)
                continue

            if node is not root and self._should_skip_element(node):
                continue  # Reject the whole subtree

            self._collect_attributes(node, language, add)

            # Option text doesn't reliably fire text mutations, so take it whole
            if node.tag_name == 'OPTION':
                text_node = _single_text_child(node) or node
                self._collect_text(text_node, language, add)
                continue

            stack.extend(reversed(node.children))

        return targets

    def _collect_text(self, node, language, add):
        text = _live_value(node)
        if not is_translatable_text(text):
            return
        if self._already_translated(node, None, language):
            return
        original = self._original_text(node) or text
        add(TranslationTarget(TargetKind.TEXT, node, original, seen_value=text))

    def _collect_attributes(self, element, language, add):
        for attribute in TRANSLATABLE_ATTRS:
            value = element.get_attribute(attribute)
            if not value or not is_translatable_text(value):
                continue
            if self._already_translated(element, attribute, language):
                continue
            original = element.get_attribute(original_attr_name(attribute)) or value
            add(TranslationTarget(TargetKind.ATTRIBUTE, element, original, attribute, seen_value=value))

    def scan_full_page(self):
        """Translate everything currently in the document."""
        if not self.should_translate:
            return

        targets = self.extract_targets(self.root)
        logger.debug(f"Full scan found {len(targets)} targets for {self.current_language}")
        if targets:
            self._schedule(targets, immediate=True)

    # Mutations

    def handle_mutations(self, records, observer=None):
        """Observer callback for a batch of records."""
        targets = []
        removed = []
        handled = set()

        for record in records:
            key = _record_key(record)
            if key in self._self_caused:
                # Our own write: consume the flag once
                self._self_caused.discard(key)
                continue

            if record.type == CHILD_LIST:
                removed.extend(record.removed_nodes)
                if self.should_translate:
                    for node in record.added_nodes:
                        if self._in_scope(node):
                            targets.extend(self.extract_targets(node))
                continue

            # Live values are read, so one look per node is enough
            if key in handled:
                continue
            handled.add(key)

            if record.type == CHARACTER_DATA:
                target = self._text_changed(record.target)
            else:
                target = self._attribute_changed(record.target, record.attribute_name)
            if target is not None:
                targets.append(target)

        for node in removed:
            if not self._in_scope(node):
                self._evict(node)

        if targets:
            self._schedule(targets)

    def _text_changed(self, node):
        text = node.data
        key = (node.node_id, TEXT_KEY)
        original = self._original_text(node)

        if original is not None and text == original:
            # The renderer put the source text back over our translation
            return self._reapply(node, original)

        if text == self._last_written.get(key):
            return None

        if not self.should_translate or not is_translatable_text(text) or self._is_excluded(node):
            return None

        # Fresh content: forget the old original
        self._translated.pop(key, None)
        self._originals.pop(node.node_id, None)
        return TranslationTarget(TargetKind.TEXT, node, text, seen_value=text)

    def _reapply(self, node, original):
        if not self.should_translate or self._is_excluded(node):
            return None

        language = self.current_language
        cached = self.cache.get(original, language)
        if cached is None:
            return TranslationTarget(TargetKind.TEXT, node, original, seen_value=original)

        self._write(node, None, cached)
        key = (node.node_id, TEXT_KEY)
        self._translated[key] = language
        self._last_written[key] = cached
        return None

    def _attribute_changed(self, element, attribute):
        if attribute not in TRANSLATABLE_ATTRS or not self.should_translate:
            return None

        value = element.get_attribute(attribute)
        if not value or not is_translatable_text(value) or self._is_excluded(element):
            return None

        key = (element.node_id, attribute)
        if value == self._last_written.get(key):
            return None

        marker_name = original_attr_name(attribute)
        marker = element.get_attribute(marker_name)
        if marker is not None and value == marker:
            original = marker
        else:
            original = value
            if marker is not None:
                # New source content replaces the old original
                element.set_attribute(marker_name, value)

        self._translated.pop(key, None)
        return TranslationTarget(TargetKind.ATTRIBUTE, element, original, attribute, seen_value=value)

    def _evict(self, root):
        node_ids = {node.node_id for node in root.iter_nodes()}
        for table in (self._translated, self._last_written):
            for key in [key for key in table if key[0] in node_ids]:
                del table[key]
        for node_id in node_ids:
            self._originals.pop(node_id, None)
        self._self_caused = {key for key in self._self_caused if key[0] not in node_ids}

    # Scheduling

    def _schedule(self, targets, immediate=False):
        for target in targets:
            marker = (target.key, target.original_text)
            if marker in self._queued:
                continue
            self._queued.add(marker)
            self._pending.append(target)

        if not self._pending:
            return

        self._cancel_handle('_debounce_handle')
        delay = 0 if immediate else MUTATION_DEBOUNCE
        self._debounce_handle = self._loop.call_later(delay, self._process_pending)

    def _process_pending(self):
        self._debounce_handle = None
        if self._processing or not self._pending:
            return

        self._processing = True
        targets, self._pending = self._pending, []
        task = self._loop.create_task(self.apply(targets))
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._apply_done(done, targets))

    def _apply_done(self, task, targets):
        self._tasks.discard(task)
        self._processing = False
        for target in targets:
            self._queued.discard((target.key, target.original_text))

        # More targets may have arrived while we were busy
        if self._pending and self._debounce_handle is None:
            self._debounce_handle = self._loop.call_later(MUTATION_DEBOUNCE, self._process_pending)

    # Writing

    async def apply(self, targets):
        """Translate ``targets`` and write the results into the document."""
        language = self.current_language
        if not targets or language == DEFAULT_LANGUAGE:
            return

        generation = self._generation
        self.preferences.set_is_translating(True)
        try:
            unique_texts = list(dict.fromkeys(target.original_text for target in targets))
            logger.debug(f"Translating {len(unique_texts)} unique texts to {language}")

            translations = await self.batcher.translate_batch(unique_texts, language)

            if self.current_language != language or self._generation != generation:
                logger.debug(f"Language changed to {self.current_language}; dropping {language} results")
                return

            # Settle anything the renderer did meanwhile before flagging our writes
            self._drain_records()

            mapping = dict(zip(unique_texts, translations))
            for target in targets:
                translation = mapping.get(target.original_text)
                if not translation or translation == target.original_text:
                    continue
                if not self._in_scope(target.node):
                    continue
                if _live_value(target.node, target.attribute) != target.seen_value:
                    continue  # Changed since it was extracted

                if target.kind is TargetKind.TEXT:
                    self._apply_text(target, translation, language)
                else:
                    self._apply_attribute(target, translation, language)
        except Exception as e:
            logger.error(f"Translation error: {e}")
        finally:
            self.preferences.set_is_translating(False)

    def _drain_records(self):
        if self._observer is None:
            return
        records = self._observer.take_records()
        if records:
            self.handle_mutations(records, self._observer)

    def _write(self, node, attribute, value):
        """Write ``value`` unless it is already there, flagging the mutation as ours."""
        if _live_value(node, attribute) == value:
            return
        self._self_caused.add(_mutation_key(node, attribute))
        if attribute is not None:
            node.set_attribute(attribute, value)
        elif isinstance(node, Text):
            node.data = value
        else:
            node.text_content = value

    def _apply_text(self, target, translation, language):
        node = target.node
        holder = node.parent if isinstance(node, Text) else node

        if isinstance(holder, Element):
            if holder is node or _single_text_child(holder) is node:
                if holder.get_attribute(ORIGINAL_TEXT_ATTR) != target.original_text:
                    holder.set_attribute(ORIGINAL_TEXT_ATTR, target.original_text)
            holder.add_class(TRANSLATED_CLASS)

        self._originals[node.node_id] = (node, target.original_text)
        self._write(node, None, translation)

        key = (node.node_id, TEXT_KEY)
        self._translated[key] = language
        self._last_written[key] = translation

    def _apply_attribute(self, target, translation, language):
        element = target.node
        marker_name = original_attr_name(target.attribute)
        if not element.has_attribute(marker_name):
            element.set_attribute(marker_name, target.original_text)

        self._write(element, target.attribute, translation)

        key = (element.node_id, target.attribute)
        self._translated[key] = language
        self._last_written[key] = translation

    # Reverting

    def _restore(self, keep_markers):
        self._drain_records()

        for node, original in list(self._originals.values()):
            if self._in_scope(node):
                self._write(node, None, original)

        for element in list(self.root.iter_elements()):
            if not keep_markers:
                element.remove_attribute(ORIGINAL_TEXT_ATTR)
            element.remove_class(TRANSLATED_CLASS)

        for attribute in TRANSLATABLE_ATTRS:
            marker_name = original_attr_name(attribute)
            for element in self.root.elements_with_attribute(marker_name):
                original = element.get_attribute(marker_name)
                if original:
                    self._write(element, attribute, original)
                if not keep_markers:
                    element.remove_attribute(marker_name)

        self._translated.clear()
        self._last_written.clear()

    def revert_translations(self):
        """Put every original text and attribute back and drop all markers."""
        self._restore(keep_markers=False)
        self._originals.clear()

    def reset_to_original(self):
        """Show originals again but keep the markers for re-translation."""
        self._restore(keep_markers=True)
