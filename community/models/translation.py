"""Translation cache model for storing translated content."""

from datetime import datetime
from community import db


class Translation(db.Model):
    """Cached translation of one field of one entity into one language.

    A row is only valid while ``source_hash`` matches the hash of the
    entity's current source content.
    """

    __tablename__ = 'translations'

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(50), nullable=False)   # 'Post', 'Comment', 'UI', 'Text'
    entity_id = db.Column(db.String(64), nullable=False)
    field_name = db.Column(db.String(100), nullable=False)
    source_language = db.Column(db.String(10), nullable=False)
    source_hash = db.Column(db.String(64), nullable=False)
    target_language = db.Column(db.String(10), nullable=False)
    translated_content = db.Column(db.Text, nullable=False)
    model_provider = db.Column(db.String(50), nullable=False)
    model_version = db.Column(db.String(50), nullable=False)
    confidence_score = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint(
            'entity_type', 'entity_id', 'field_name', 'target_language',
            name='unique_entity_translation'
        ),
        db.Index('ix_translations_entity', 'entity_type', 'entity_id'),
    )

    def to_dict(self):
        """Convert translation to dictionary."""
        return {
            'id': self.id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'field_name': self.field_name,
            'source_language': self.source_language,
            'target_language': self.target_language,
            'translated_content': self.translated_content,
            'model_provider': self.model_provider,
            'model_version': self.model_version,
            'confidence_score': self.confidence_score,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
