from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_limiter import Limiter
import logging
import os
from dotenv import load_dotenv

from community.utils.network import get_client_ip

load_dotenv()

db = SQLAlchemy()
limiter = Limiter(get_client_ip)

logger = logging.getLogger(__name__)


def create_app(config_name='development'):
    app = Flask(__name__)

    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'))

    # Config
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv(
        'DATABASE_URL',
        'sqlite:///community.db'
    )
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 2592000))

    # Translation endpoint rate limiting (per client IP, fixed window)
    app.config['TRANSLATE_RATE_LIMIT'] = os.getenv('TRANSLATE_RATE_LIMIT', '100 per minute')
    app.config['RATELIMIT_STORAGE_URI'] = os.getenv('REDIS_URL', 'memory://')
    app.config['RATELIMIT_STRATEGY'] = 'fixed-window'
    app.config['RATELIMIT_HEADERS_ENABLED'] = True

    # Parallel provider calls for batch content translation
    app.config['TRANSLATION_MAX_WORKERS'] = int(os.getenv('TRANSLATION_MAX_WORKERS', 4))

    if config_name == 'testing':
        app.config['TESTING'] = True
        app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///:memory:'
        app.config['RATELIMIT_STORAGE_URI'] = 'memory://'
        app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'test-secret-key-for-testing')

    # Initialize extensions
    db.init_app(app)
    limiter.init_app(app)
    CORS(app)

    # Import models so their tables are registered before create_all
    from community import models  # noqa: F401

    # Create tables with error handling
    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            logger.warning(f"Could not create database tables: {e}")
            logger.warning("This is OK if database is not ready yet.")

    # Register routes
    from community.routes import register_routes
    register_routes(app)

    # Health check
    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok'}, 200

    return app
