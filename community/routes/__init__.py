"""Routes package for the community application."""

import time
from flask import jsonify


def register_routes(app):
    """Register all route blueprints with the application."""
    from .translate import translate_bp
    from .user_language import user_language_bp
    from .posts import posts_bp

    app.register_blueprint(translate_bp, url_prefix='/api/translate')
    app.register_blueprint(user_language_bp, url_prefix='/api/user/language')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        """Retryable rate-limit error with an explicit retry hint."""
        from community import limiter

        retry_after = 60
        current = limiter.current_limit
        if current is not None:
            retry_after = max(1, int(current.reset_at - time.time()))

        response = jsonify({'error': 'Rate limit exceeded. Please try again later.'})
        response.status_code = 429
        response.headers['Retry-After'] = str(retry_after)
        response.headers['X-RateLimit-Remaining'] = '0'
        return response
