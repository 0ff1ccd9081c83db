"""Feed routes: posts and comments, served in the reader's language."""

import logging
from flask import Blueprint, request, jsonify

from community import db
from community.constants.languages import is_supported, normalize_language
from community.models import Post, Comment
from community.services.translation import (
    detect_language,
    get_user_language,
    translate_comment_for_user,
    translate_comments_for_user,
    translate_post_for_user,
    translate_posts_for_user,
)
from community.services.translation_cache import delete_cached_translations
from community.utils import token_optional, token_required

logger = logging.getLogger(__name__)

posts_bp = Blueprint('posts', __name__)


def _reader_language(current_user_id):
    """Resolve the language to serve: ?lang= first, then the profile."""
    lang = request.args.get('lang')
    if lang and is_supported(lang):
        return normalize_language(lang)
    return normalize_language(get_user_language(current_user_id))


def _source_language(data, text):
    """Language a new post/comment is written in (detected when not given)."""
    lang = data.get('language_code')
    if isinstance(lang, str) and is_supported(lang):
        return normalize_language(lang)
    return detect_language(text)


@posts_bp.route('', methods=['GET'])
@token_optional
def list_posts(current_user_id):
    """List feed posts translated into the reader's language.

    Query params:
    - lang: override the reader's stored language
    - page: Page number (default: 1)
    - per_page: Items per page (default: 20)
    """
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)
    language = _reader_language(current_user_id)

    pagination = Post.query.order_by(Post.created_at.desc(), Post.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )
    posts = translate_posts_for_user([post.to_dict() for post in pagination.items], language)

    return jsonify({
        'posts': posts,
        'language': language,
        'total': pagination.total,
        'page': page,
        'per_page': per_page,
        'has_more': pagination.has_next,
    }), 200


@posts_bp.route('/<int:post_id>', methods=['GET'])
@token_optional
def get_post(current_user_id, post_id):
    """Get a post with its comments, translated into the reader's language."""
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({'error': 'Post not found'}), 404

    language = _reader_language(current_user_id)
    post_data = translate_post_for_user(post.to_dict(), language)
    post_data['comments'] = translate_comments_for_user(
        [comment.to_dict() for comment in post.comments], language
    )
    post_data['language'] = language
    return jsonify(post_data), 200


@posts_bp.route('', methods=['POST'])
@token_required
def create_post(current_user_id):
    """Create a post. The source language is detected when not supplied."""
    data = request.get_json(silent=True) or {}
    content = data.get('content')
    title = data.get('title')

    if not content or not isinstance(content, str) or not content.strip():
        return jsonify({'error': 'content is required'}), 400
    if title is not None and not isinstance(title, str):
        return jsonify({'error': 'title must be a string'}), 400

    try:
        post = Post(
            author_id=current_user_id,
            title=title,
            content=content,
            language_code=_source_language(data, content),
        )
        db.session.add(post)
        db.session.commit()
        return jsonify(post.to_dict()), 201
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating post: {e}")
        return jsonify({'error': 'Failed to create post'}), 500


@posts_bp.route('/<int:post_id>', methods=['PUT'])
@token_required
def update_post(current_user_id, post_id):
    """Edit a post. Cached translations go stale through the content hash."""
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({'error': 'Post not found'}), 404
    if post.author_id != current_user_id:
        return jsonify({'error': 'Not allowed to edit this post'}), 403

    data = request.get_json(silent=True) or {}
    if 'content' in data:
        if not isinstance(data['content'], str) or not data['content'].strip():
            return jsonify({'error': 'content must be a non-empty string'}), 400
        post.content = data['content']
    if 'title' in data:
        if data['title'] is not None and not isinstance(data['title'], str):
            return jsonify({'error': 'title must be a string'}), 400
        post.title = data['title']
    if 'language_code' in data and is_supported(data['language_code']):
        post.language_code = normalize_language(data['language_code'])

    db.session.commit()
    return jsonify(post.to_dict()), 200


@posts_bp.route('/<int:post_id>', methods=['DELETE'])
@token_required
def delete_post(current_user_id, post_id):
    """Delete a post, its comments and every cached translation of them."""
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({'error': 'Post not found'}), 404
    if post.author_id != current_user_id:
        return jsonify({'error': 'Not allowed to delete this post'}), 403

    comment_ids = [comment.id for comment in post.comments]
    db.session.delete(post)
    db.session.commit()

    purged = delete_cached_translations('Post', post_id)
    for comment_id in comment_ids:
        purged += delete_cached_translations('Comment', comment_id)

    return jsonify({'message': 'Post deleted', 'translations_purged': purged}), 200


@posts_bp.route('/<int:post_id>/comments', methods=['POST'])
@token_required
def create_comment(current_user_id, post_id):
    """Comment on a post."""
    post = db.session.get(Post, post_id)
    if not post:
        return jsonify({'error': 'Post not found'}), 404

    data = request.get_json(silent=True) or {}
    content = data.get('content')
    if not content or not isinstance(content, str) or not content.strip():
        return jsonify({'error': 'content is required'}), 400

    comment = Comment(
        post_id=post.id,
        author_id=current_user_id,
        content=content,
        language_code=_source_language(data, content),
    )
    db.session.add(comment)
    db.session.commit()

    # Echo the comment back in the language the author is reading in
    return jsonify(translate_comment_for_user(comment.to_dict(), _reader_language(current_user_id))), 201


@posts_bp.route('/<int:post_id>/comments/<int:comment_id>', methods=['DELETE'])
@token_required
def delete_comment(current_user_id, post_id, comment_id):
    """Delete a comment and its cached translations."""
    comment = Comment.query.filter_by(id=comment_id, post_id=post_id).first()
    if not comment:
        return jsonify({'error': 'Comment not found'}), 404
    if comment.author_id != current_user_id:
        return jsonify({'error': 'Not allowed to delete this comment'}), 403

    db.session.delete(comment)
    db.session.commit()
    purged = delete_cached_translations('Comment', comment_id)

    return jsonify({'message': 'Comment deleted', 'translations_purged': purged}), 200
