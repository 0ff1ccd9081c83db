"""Shared authentication utilities.

This module provides JWT bearer-token decorators used across route files.
Tokens are issued elsewhere (the platform's auth service); here we only
decode them to identify the caller.
"""

from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify, current_app
import jwt


def _get_secret_key():
    """Get JWT secret from Flask app config (single source of truth)."""
    return current_app.config['JWT_SECRET_KEY']


def generate_token(user_id, expires_in=None):
    """Issue a signed HS256 token carrying ``user_id``."""
    if expires_in is None:
        expires_in = current_app.config.get('JWT_ACCESS_TOKEN_EXPIRES', 2592000)
    payload = {
        'user_id': user_id,
        'exp': datetime.utcnow() + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, _get_secret_key(), algorithm='HS256')


def _decode_user_id(auth_header):
    # Support both "Bearer <token>" and raw token formats
    token = auth_header.split(' ')[1] if ' ' in auth_header else auth_header
    payload = jwt.decode(token, _get_secret_key(), algorithms=['HS256'])
    return payload['user_id']


def token_required(f):
    """
    Decorator to require valid JWT token.

    Extracts user_id from JWT token and passes it as the first argument
    to the decorated function.

    Usage:
        @bp.route('/protected')
        @token_required
        def protected_route(current_user_id):
            return jsonify({'user_id': current_user_id})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization')

        if not auth_header:
            return jsonify({'error': 'Token is missing'}), 401

        try:
            current_user_id = _decode_user_id(auth_header)
        except jwt.ExpiredSignatureError:
            return jsonify({'error': 'Token has expired'}), 401
        except (jwt.InvalidTokenError, KeyError, IndexError):
            return jsonify({'error': 'Token is invalid'}), 401

        return f(current_user_id, *args, **kwargs)
    return decorated


def token_optional(f):
    """
    Decorator that optionally validates JWT token.

    If a valid token is provided, extracts user_id. Otherwise, passes None.
    Useful for endpoints that work for both authenticated and anonymous users.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization')
        current_user_id = None

        if auth_header:
            try:
                current_user_id = _decode_user_id(auth_header)
            except (jwt.InvalidTokenError, KeyError, IndexError):
                current_user_id = None  # Token invalid, but that's ok - it's optional

        return f(current_user_id, *args, **kwargs)
    return decorated
