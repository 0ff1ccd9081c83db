"""Translation cache layer.

Stores and retrieves translations from the database to avoid repeated API
calls. Every function is fail-soft: a database error is logged and treated
as a cache miss (or a no-op for writes), never propagated.
"""
import hashlib
import logging
from datetime import datetime

from sqlalchemy.dialects import postgresql, sqlite

from community import db
from community.models import Translation

logger = logging.getLogger(__name__)

_UNIQUE_KEY = ('entity_type', 'entity_id', 'field_name', 'target_language')

_UPDATABLE_FIELDS = (
    'source_language',
    'source_hash',
    'translated_content',
    'model_provider',
    'model_version',
    'confidence_score',
)


def hash_content(text: str) -> str:
    """SHA-256 fingerprint of source content, used for invalidation."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def _rollback():
    try:
        db.session.rollback()
    except Exception as e:
        logger.debug(f"Rollback after cache error failed: {e}")


def get_cached_translation(entity_type: str, entity_id, field_name: str, target_language: str):
    """Return the cached Translation row, or None."""
    try:
        return Translation.query.filter_by(
            entity_type=entity_type,
            entity_id=str(entity_id),
            field_name=field_name,
            target_language=target_language,
        ).first()
    except Exception as e:
        logger.error(f"Error fetching cached translation: {e}")
        _rollback()
        return None


def get_cached_translation_with_hash(entity_type: str, entity_id, field_name: str,
                                     target_language: str, source_hash: str) -> str | None:
    """Return cached content only if the stored source hash still matches.

    A missing row and a stale row are the same thing to the caller: a miss.
    """
    cached = get_cached_translation(entity_type, entity_id, field_name, target_language)
    if cached is not None and cached.source_hash == source_hash:
        return cached.translated_content
    return None


def _upsert_statement(dialect_name: str, values: dict):
    if dialect_name == 'postgresql':
        insert = postgresql.insert
    elif dialect_name == 'sqlite':
        insert = sqlite.insert
    else:
        return None

    stmt = insert(Translation).values(**values)
    update = {field: stmt.excluded[field] for field in _UPDATABLE_FIELDS}
    update['updated_at'] = datetime.utcnow()
    return stmt.on_conflict_do_update(index_elements=list(_UNIQUE_KEY), set_=update)


def set_cached_translation(*, entity_type: str, entity_id, field_name: str,
                           source_language: str, source_hash: str, target_language: str,
                           translated_content: str, model_provider: str, model_version: str,
                           confidence_score: float | None = None) -> bool:
    """Store or update a translation (last write wins on the unique key).

    Returns True when the row was written. Caching failures are logged and
    swallowed; they must not break content delivery.
    """
    values = {
        'entity_type': entity_type,
        'entity_id': str(entity_id),
        'field_name': field_name,
        'source_language': source_language,
        'source_hash': source_hash,
        'target_language': target_language,
        'translated_content': translated_content,
        'model_provider': model_provider,
        'model_version': model_version,
        'confidence_score': confidence_score,
    }

    try:
        stmt = _upsert_statement(db.session.get_bind().dialect.name, values)
        if stmt is not None:
            db.session.execute(stmt)
        else:
            existing = Translation.query.filter_by(
                **{key: values[key] for key in _UNIQUE_KEY}
            ).first()
            if existing:
                for field in _UPDATABLE_FIELDS:
                    setattr(existing, field, values[field])
            else:
                db.session.add(Translation(**values))
        db.session.commit()
        return True
    except Exception as e:
        logger.error(f"Error caching translation: {e}")
        _rollback()
        return False


def delete_cached_translations(entity_type: str, entity_id) -> int:
    """Delete every cached translation of an entity (e.g. when it is deleted)."""
    try:
        deleted = Translation.query.filter_by(
            entity_type=entity_type,
            entity_id=str(entity_id),
        ).delete(synchronize_session=False)
        db.session.commit()
        return deleted
    except Exception as e:
        logger.error(f"Error deleting cached translations: {e}")
        _rollback()
        return 0
