"""Feed post and comment models."""

from datetime import datetime
from community import db


class Post(db.Model):
    """Feed post. ``language_code`` is the language it was written in."""

    __tablename__ = 'posts'

    id = db.Column(db.Integer, primary_key=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    language_code = db.Column(db.String(10), default='en', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    comments = db.relationship(
        'Comment',
        backref='post',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='Comment.created_at',
    )

    def to_dict(self):
        """Convert post to dictionary."""
        return {
            'id': self.id,
            'author_id': self.author_id,
            'author': self.author.username if self.author else None,
            'title': self.title,
            'content': self.content,
            'language_code': self.language_code,
            'comments_count': len(self.comments),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<Post {self.id}>'


class Comment(db.Model):
    """Comment on a feed post."""

    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id'), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    language_code = db.Column(db.String(10), default='en', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    author = db.relationship('User')

    def to_dict(self):
        """Convert comment to dictionary."""
        return {
            'id': self.id,
            'post_id': self.post_id,
            'author_id': self.author_id,
            'author': self.author.username if self.author else None,
            'content': self.content,
            'language_code': self.language_code,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
