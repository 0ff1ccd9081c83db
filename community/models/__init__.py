"""Database models for the community application."""

from .user import User
from .post import Post, Comment
from .translation import Translation

__all__ = ['User', 'Post', 'Comment', 'Translation']
