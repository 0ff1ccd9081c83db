"""
Pytest configuration and fixtures for testing the community translation API.
"""

import os
import sys
import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from community import create_app, db, limiter
from community.models import User, Post, Comment
from community.services import deepl
from community.utils import generate_token

fake = Faker()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'
    os.environ['JWT_SECRET_KEY'] = 'test-secret-key-for-testing'

    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    with app.app_context():
        limiter.reset()
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


class FakeResponse:
    def __init__(self, status_code, payload=None, text=''):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON body')
        return self._payload


class FakeDeepL:
    """Stands in for the DeepL /v2/translate endpoint.

    Known texts come from ``dictionary``; anything else is returned as
    ``"[<TARGET>] <text>"``. Set ``fail`` to simulate a provider outage,
    ``drop_last`` to return one translation too few.
    """

    def __init__(self):
        self.calls = []
        self.dictionary = {}
        self.detected_source = 'EN'
        self.fail = False
        self.drop_last = False
        self.status_code = 200

    def translate(self, text, target):
        return self.dictionary.get((text, target), f'[{target}] {text}')

    def __call__(self, url, headers=None, json=None, timeout=None):
        self.calls.append({'url': url, 'headers': headers, 'json': json})
        if self.fail:
            raise deepl.requests.ConnectionError('DeepL unreachable')
        if self.status_code != 200:
            return FakeResponse(self.status_code, text='Quota exceeded')

        target = json['target_lang']
        translations = [
            {'text': self.translate(text, target), 'detected_source_language': self.detected_source}
            for text in json['text']
        ]
        if self.drop_last:
            translations = translations[:-1]
        return FakeResponse(200, {'translations': translations})

    @property
    def texts_sent(self):
        return [text for call in self.calls for text in call['json']['text']]


@pytest.fixture
def fake_deepl(monkeypatch):
    """Route DeepL traffic to an in-process fake with a configured key."""
    fake_api = FakeDeepL()
    monkeypatch.setenv('DEEPL_API_KEY', 'test-deepl-key')
    monkeypatch.setattr(deepl.requests, 'post', fake_api)
    return fake_api


@pytest.fixture
def no_deepl_key(monkeypatch):
    monkeypatch.delenv('DEEPL_API_KEY', raising=False)


def _create_user(**overrides):
    """Helper to create a user with sensible defaults."""
    data = {
        'username': fake.user_name() + fake.pystr(min_chars=4, max_chars=6),
        'email': fake.unique.email(),
        'display_name': fake.name(),
        'language_code': 'en',
    }
    data.update(overrides)
    user = User(**data)
    db.session.add(user)
    db.session.commit()
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'language_code': user.language_code,
    }


@pytest.fixture
def test_user(app, db_session):
    """Create a test user."""
    with app.app_context():
        return _create_user()


@pytest.fixture
def spanish_user(app, db_session):
    """Create a user who reads in Spanish."""
    with app.app_context():
        return _create_user(language_code='es')


def _auth_headers(app, user_id):
    with app.app_context():
        token = generate_token(user_id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def auth_headers(app, test_user):
    """Get authentication headers for test user."""
    return _auth_headers(app, test_user['id'])


@pytest.fixture
def spanish_auth_headers(app, spanish_user):
    """Get authentication headers for the Spanish-reading user."""
    return _auth_headers(app, spanish_user['id'])


@pytest.fixture
def test_post(app, db_session, test_user):
    """Create an English post with one comment."""
    with app.app_context():
        post = Post(
            author_id=test_user['id'],
            title='Welcome to the community',
            content='Say hello to everyone',
            language_code='en',
        )
        db.session.add(post)
        db.session.commit()
        comment = Comment(post_id=post.id, author_id=test_user['id'], content='Great post', language_code='en')
        db.session.add(comment)
        db.session.commit()
        return {'id': post.id, 'comment_id': comment.id, 'author_id': post.author_id}
