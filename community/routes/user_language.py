"""User language preference routes.

Lets signed-in users store their language in their profile. Local
persistence on the client is primary; anonymous callers get a successful
no-op so the client never has to special-case them.
"""

import logging
from flask import Blueprint, request, jsonify

from community import db
from community.constants.languages import DEFAULT_LANGUAGE, LANGUAGE_CODE_PATTERN
from community.models import User
from community.utils import token_optional

logger = logging.getLogger(__name__)

user_language_bp = Blueprint('user_language', __name__)


@user_language_bp.route('', methods=['POST'])
@token_optional
def update_language(current_user_id):
    """Persist the caller's preferred language code."""
    if not current_user_id:
        # Not logged in - that's fine, the client keeps its local preference
        return jsonify({'success': True, 'saved': False}), 200

    data = request.get_json(silent=True) or {}
    language_code = data.get('languageCode')

    if not language_code or not isinstance(language_code, str):
        return jsonify({'error': 'languageCode is required'}), 400

    if not LANGUAGE_CODE_PATTERN.match(language_code):
        return jsonify({'error': 'Invalid language code format'}), 400

    try:
        user = db.session.get(User, current_user_id)
        if not user:
            return jsonify({'error': 'User not found'}), 404

        user.language_code = language_code.lower()
        db.session.commit()
        return jsonify({'success': True, 'saved': True}), 200
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating user language: {e}")
        return jsonify({'error': 'Failed to update language preference'}), 500


@user_language_bp.route('', methods=['GET'])
@token_optional
def get_language(current_user_id):
    """Return the caller's stored language (null when anonymous)."""
    if not current_user_id:
        return jsonify({'languageCode': None}), 200

    try:
        user = db.session.get(User, current_user_id)
        return jsonify({'languageCode': (user.language_code if user else None) or DEFAULT_LANGUAGE}), 200
    except Exception as e:
        logger.error(f"Error getting user language: {e}")
        return jsonify({'languageCode': DEFAULT_LANGUAGE}), 200
