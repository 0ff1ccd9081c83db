"""Core translation API.

High-level translation functions that combine the database cache, language
detection and the DeepL provider.

FAST PATHS (no API call):
- Source and target share a base language
- Empty or whitespace-only content
- Cached translation whose source hash matches the current content

Every helper here fails open: whatever goes wrong, the caller gets the
original content back for the affected item and the rest of the batch is
still translated.
"""
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from flask import current_app, has_app_context

from community.constants.languages import (
    DEFAULT_LANGUAGE,
    normalize_language,
    same_base_language,
    to_provider_code,
)
from community.services import deepl
from community.services.translation_cache import (
    get_cached_translation_with_hash,
    hash_content,
    set_cached_translation,
)

logger = logging.getLogger(__name__)

POST_FIELDS = ('title', 'content')
COMMENT_FIELDS = ('content',)

UI_ENTITY_TYPE = 'UI'
TEXT_ENTITY_TYPE = 'Text'
UI_FIELD_NAME_LENGTH = 50
AUTO_SOURCE = 'auto'
DEFAULT_MAX_WORKERS = 4


@dataclass
class TranslationJob:
    """One (entity, field) pair to translate into one language."""
    entity_type: str
    entity_id: str
    field_name: str
    content: str
    source_language: str
    target_language: str

    @property
    def is_noop(self) -> bool:
        if not isinstance(self.content, str) or not self.content.strip():
            return True
        return same_base_language(self.source_language, self.target_language)


def _max_workers() -> int:
    if has_app_context():
        return int(current_app.config.get('TRANSLATION_MAX_WORKERS', DEFAULT_MAX_WORKERS))
    return DEFAULT_MAX_WORKERS


def _provider_translate(job: TranslationJob) -> str:
    try:
        return deepl.translate_text(job.content, job.source_language, job.target_language)
    except Exception as e:
        logger.warning(f"Translation failed for {job.entity_type}:{job.entity_id}.{job.field_name}: {e}")
        return job.content


def _run_provider_calls(jobs: list[TranslationJob]) -> list[str]:
    """Call the provider for each job, in parallel when there is more than one.

    Only the network calls run on worker threads; no database access
    happens off the request thread.
    """
    if not jobs:
        return []

    max_workers = _max_workers()
    if len(jobs) == 1 or max_workers <= 1:
        return [_provider_translate(job) for job in jobs]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(jobs))) as executor:
        return list(executor.map(_provider_translate, jobs))


def translate_jobs(jobs: list[TranslationJob]) -> list[str]:
    """Translate a list of jobs, preserving input order.

    1. No-op jobs (same language, empty content) return their content.
    2. Jobs whose cached source hash matches are served from the cache.
    3. The remaining jobs are deduplicated and sent to the provider in
       parallel; results that differ from the input are written back.
    """
    results: list[str | None] = [None] * len(jobs)
    misses: list[tuple[int, TranslationJob, str]] = []

    for index, job in enumerate(jobs):
        if job.is_noop:
            results[index] = job.content
            continue
        try:
            source_hash = hash_content(job.content)
            cached = get_cached_translation_with_hash(
                job.entity_type, job.entity_id, job.field_name, job.target_language, source_hash
            )
        except Exception as e:
            logger.warning(f"Cache lookup failed for {job.entity_type}:{job.entity_id}: {e}")
            results[index] = job.content
            continue

        if cached is not None:
            results[index] = cached
        else:
            misses.append((index, job, source_hash))

    # Identical content going to the same language is only sent once
    unique_jobs: dict[tuple[str, str, str], TranslationJob] = {}
    for _, job, _ in misses:
        key = (job.content, normalize_language(job.source_language), job.target_language)
        unique_jobs.setdefault(key, job)

    unique_keys = list(unique_jobs)
    translated = dict(zip(unique_keys, _run_provider_calls(list(unique_jobs.values()))))

    for index, job, source_hash in misses:
        key = (job.content, normalize_language(job.source_language), job.target_language)
        text = translated.get(key, job.content)
        results[index] = text

        # Identical output is what a failed or disabled provider returns
        if text == job.content:
            continue
        set_cached_translation(
            entity_type=job.entity_type,
            entity_id=job.entity_id,
            field_name=job.field_name,
            source_language=job.source_language,
            source_hash=source_hash,
            target_language=job.target_language,
            translated_content=text,
            model_provider=deepl.MODEL_PROVIDER,
            model_version=deepl.MODEL_VERSION,
        )

    return results


def translate_for_user(entity_type: str, entity_id, field_name: str, content: str,
                       source_language: str, target_language: str) -> str:
    """
    Translate one field of one entity for a reader.

    - Returns original if source and target languages match
    - Checks cache first (valid only while the content hash matches)
    - Falls back to DeepL on cache miss
    - Stores successful results in the cache

    Returns:
        Translated text (or original if translation fails/skipped)
    """
    job = TranslationJob(
        entity_type=entity_type,
        entity_id=str(entity_id),
        field_name=field_name,
        content=content,
        source_language=normalize_language(source_language),
        target_language=normalize_language(target_language),
    )
    return translate_jobs([job])[0]


def translate_many(record: dict, fields, entity_type: str, entity_id,
                   source_language: str, target_language: str) -> dict:
    """Translate the given string fields of one record. Returns a copy."""
    translated = dict(record)
    source = normalize_language(source_language)
    target = normalize_language(target_language)

    jobs, slots = [], []
    for field in fields:
        value = record.get(field)
        if isinstance(value, str) and value.strip():
            jobs.append(TranslationJob(entity_type, str(entity_id), field, value, source, target))
            slots.append(field)

    for field, text in zip(slots, translate_jobs(jobs)):
        translated[field] = text
    return translated


def translate_records(records: list[dict], fields, entity_type: str, target_language: str,
                      id_field: str = 'id', language_field: str = 'language_code') -> list[dict]:
    """Translate several records in one parallel fan-out.

    Each record's source language is read from ``language_field``; records
    without one are assumed to be in the default language.
    """
    target = normalize_language(target_language)
    translated = [dict(record) for record in records]

    jobs, slots = [], []
    for position, record in enumerate(records):
        source = normalize_language(record.get(language_field) or DEFAULT_LANGUAGE)
        if source == target:
            continue
        for field in fields:
            value = record.get(field)
            if isinstance(value, str) and value.strip():
                jobs.append(TranslationJob(
                    entity_type, str(record.get(id_field)), field, value, source, target
                ))
                slots.append((position, field))

    for (position, field), text in zip(slots, translate_jobs(jobs)):
        translated[position][field] = text
    return translated


def translate_post_for_user(post: dict, user_language: str) -> dict:
    """Translate a post's title and content."""
    return translate_records([post], POST_FIELDS, 'Post', user_language)[0]


def translate_posts_for_user(posts: list[dict], user_language: str) -> list[dict]:
    """Translate multiple posts in parallel."""
    return translate_records(posts, POST_FIELDS, 'Post', user_language)


def translate_comment_for_user(comment: dict, user_language: str) -> dict:
    """Translate a comment's content."""
    return translate_records([comment], COMMENT_FIELDS, 'Comment', user_language)[0]


def translate_comments_for_user(comments: list[dict], user_language: str) -> list[dict]:
    """Translate multiple comments in parallel."""
    return translate_records(comments, COMMENT_FIELDS, 'Comment', user_language)


# ============ UI strings ============
# UI strings are cached with entity type 'UI', the context as entity id
# (e.g. 'category', 'placeholder', 'button') and a slug of the text as
# field name.

def _ui_field_name(text: str) -> str:
    return re.sub(r'\s+', '_', text.lower())[:UI_FIELD_NAME_LENGTH]


def _ui_job(text: str, source: str, target: str, context: str) -> TranslationJob:
    return TranslationJob(UI_ENTITY_TYPE, context, _ui_field_name(text), text, source, target)


def translate_ui_texts(texts: list[str], source_language: str, target_language: str,
                       context: str = 'general') -> list[str]:
    """Translate multiple UI strings in parallel."""
    source = normalize_language(source_language)
    target = normalize_language(target_language)
    if source == target:
        return list(texts)
    return translate_jobs([_ui_job(text, source, target, context) for text in texts])


def translate_ui_text(text: str, source_language: str, target_language: str,
                      context: str = 'general') -> str:
    """Translate a single UI string."""
    return translate_ui_texts([text], source_language, target_language, context)[0]


def translate_objects(objects: list[dict], fields, source_language: str, target_language: str,
                      context: str = 'general') -> list[dict]:
    """Translate the allow-listed string fields of each object (e.g. categories)."""
    source = normalize_language(source_language)
    target = normalize_language(target_language)
    translated = [dict(obj) for obj in objects]
    if source == target:
        return translated

    jobs, slots = [], []
    for position, obj in enumerate(objects):
        for field in fields:
            value = obj.get(field)
            if isinstance(value, str) and value.strip():
                jobs.append(_ui_job(value, source, target, context))
                slots.append((position, field))

    for (position, field), text in zip(slots, translate_jobs(jobs)):
        translated[position][field] = text
    return translated


def translate_object(obj: dict, fields, source_language: str, target_language: str,
                     context: str = 'general') -> dict:
    """Translate an object's allow-listed string fields."""
    return translate_objects([obj], fields, source_language, target_language, context)[0]


def t(text: str, target_language: str, context: str = 'general',
      source_language: str = DEFAULT_LANGUAGE) -> str:
    """Translate a UI string for a reader."""
    return translate_ui_text(text, source_language, target_language, context)


def t_many(texts: dict, target_language: str, context: str = 'general',
           source_language: str = DEFAULT_LANGUAGE) -> dict:
    """Translate a string-keyed map of UI strings; keys and order are preserved."""
    keys = list(texts)
    values = translate_ui_texts([texts[key] for key in keys], source_language, target_language, context)
    return dict(zip(keys, values))


# ============ Free text (the /api/translate boundary) ============

def translate_texts(texts: list[str], source_language: str | None, target_language: str) -> list[str]:
    """Translate arbitrary texts with content-addressed caching.

    Entries are cached under entity type 'Text' keyed by the content hash,
    so the same sentence is only ever sent to DeepL once per target. All
    cache misses go out in a single batch request. ``source_language`` of
    None lets DeepL auto-detect.
    """
    texts = list(texts)
    results = list(texts)
    target_key = to_provider_code(target_language, is_target=True).lower()
    source_key = normalize_language(source_language) if source_language else AUTO_SOURCE

    misses: dict[str, list[int]] = {}
    hashes: dict[str, str] = {}
    for index, text in enumerate(texts):
        if not isinstance(text, str) or not text.strip():
            continue
        source_hash = hashes.get(text) or hash_content(text)
        hashes[text] = source_hash
        cached = get_cached_translation_with_hash(
            TEXT_ENTITY_TYPE, source_hash, 'text', target_key, source_hash
        )
        if cached is not None:
            results[index] = cached
        else:
            misses.setdefault(text, []).append(index)

    if not misses:
        return results

    pending = list(misses)
    translated = deepl.translate_batch(pending, source_language, target_language)

    for text, translation in zip(pending, translated):
        for index in misses[text]:
            results[index] = translation
        if translation == text:
            continue
        set_cached_translation(
            entity_type=TEXT_ENTITY_TYPE,
            entity_id=hashes[text],
            field_name='text',
            source_language=source_key,
            source_hash=hashes[text],
            target_language=target_key,
            translated_content=translation,
            model_provider=deepl.MODEL_PROVIDER,
            model_version=deepl.MODEL_VERSION,
        )

    return results


# ============ Language helpers ============

def detect_language(text: str) -> str:
    """Detect the language of text, falling back to the default language."""
    if not text or not text.strip():
        return DEFAULT_LANGUAGE
    try:
        return deepl.detect_language_via_translation(text) or DEFAULT_LANGUAGE
    except Exception as e:
        logger.error(f"Language detection failed: {e}")
        return DEFAULT_LANGUAGE


def get_user_language(user_id) -> str:
    """Get a user's preferred language code (default language when unknown)."""
    if not user_id:
        return DEFAULT_LANGUAGE
    try:
        from community import db
        from community.models import User
        user = db.session.get(User, user_id)
        return (user.language_code if user and user.language_code else DEFAULT_LANGUAGE)
    except Exception as e:
        logger.debug(f"User language lookup error: {e}")
        return DEFAULT_LANGUAGE
