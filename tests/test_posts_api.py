"""
Tests for the /api/posts feed endpoints and their translation.
"""

from community import db
from community.models import Post, Translation
from community.services.translation_cache import get_cached_translation


class TestReadPosts:
    """Tests for GET /api/posts and GET /api/posts/<id>"""

    def test_list_in_default_language(self, client, db_session, fake_deepl, test_post):
        response = client.get('/api/posts')

        assert response.status_code == 200
        data = response.get_json()
        assert data['language'] == 'en'
        assert data['posts'][0]['title'] == 'Welcome to the community'
        assert fake_deepl.calls == []

    def test_list_translated_by_query(self, client, db_session, fake_deepl, test_post):
        data = client.get('/api/posts?lang=fr').get_json()

        assert data['language'] == 'fr'
        assert data['posts'][0]['title'] == '[FR] Welcome to the community'
        assert data['posts'][0]['content'] == '[FR] Say hello to everyone'

    def test_list_uses_reader_language(self, client, db_session, fake_deepl, test_post, spanish_auth_headers):
        data = client.get('/api/posts', headers=spanish_auth_headers).get_json()
        assert data['posts'][0]['title'] == '[ES] Welcome to the community'

    def test_unsupported_query_language_is_ignored(self, client, db_session, fake_deepl, test_post):
        data = client.get('/api/posts?lang=xx').get_json()
        assert data['language'] == 'en'

    def test_repeat_reads_hit_the_cache(self, client, db_session, fake_deepl, test_post):
        client.get('/api/posts?lang=de')
        calls = len(fake_deepl.calls)
        client.get('/api/posts?lang=de')
        assert len(fake_deepl.calls) == calls

    def test_get_post_with_comments(self, client, db_session, fake_deepl, test_post):
        response = client.get(f"/api/posts/{test_post['id']}?lang=es")

        assert response.status_code == 200
        data = response.get_json()
        assert data['content'] == '[ES] Say hello to everyone'
        assert data['comments'][0]['content'] == '[ES] Great post'
        assert data['language'] == 'es'

    def test_get_missing_post(self, client, db_session):
        assert client.get('/api/posts/999').status_code == 404


class TestWritePosts:
    """Tests for POST/PUT/DELETE on /api/posts"""

    def test_create_requires_auth(self, client, db_session):
        assert client.post('/api/posts', json={'content': 'Hi'}).status_code == 401

    def test_create_detects_language(self, client, db_session, fake_deepl, auth_headers):
        fake_deepl.detected_source = 'DE'
        response = client.post('/api/posts', json={'content': 'Guten Morgen'}, headers=auth_headers)

        assert response.status_code == 201
        assert response.get_json()['language_code'] == 'de'

    def test_create_with_explicit_language(self, client, db_session, fake_deepl, auth_headers):
        response = client.post(
            '/api/posts',
            json={'title': 'Hola', 'content': 'Buenos días', 'language_code': 'es-MX'},
            headers=auth_headers,
        )
        assert response.get_json()['language_code'] == 'es'
        assert fake_deepl.calls == []

    def test_create_rejects_empty_content(self, client, db_session, auth_headers):
        response = client.post('/api/posts', json={'content': '   '}, headers=auth_headers)
        assert response.status_code == 400

    def test_edit_invalidates_translation(self, client, db_session, fake_deepl, test_post, auth_headers):
        post_id = test_post['id']
        client.get(f'/api/posts/{post_id}?lang=fr')

        response = client.put(f'/api/posts/{post_id}', json={'content': 'Say goodbye'}, headers=auth_headers)
        assert response.status_code == 200

        data = client.get(f'/api/posts/{post_id}?lang=fr').get_json()
        assert data['content'] == '[FR] Say goodbye'
        assert get_cached_translation('Post', post_id, 'content', 'fr').translated_content == '[FR] Say goodbye'

    def test_edit_by_other_user_is_forbidden(self, client, db_session, test_post, spanish_auth_headers):
        response = client.put(f"/api/posts/{test_post['id']}", json={'content': 'Hacked'}, headers=spanish_auth_headers)
        assert response.status_code == 403

    def test_delete_purges_translations(self, client, db_session, fake_deepl, test_post, auth_headers):
        post_id = test_post['id']
        client.get(f'/api/posts/{post_id}?lang=fr')
        assert Translation.query.filter_by(entity_type='Comment').count() == 1

        response = client.delete(f'/api/posts/{post_id}', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['translations_purged'] == 3
        assert db.session.get(Post, post_id) is None
        assert Translation.query.count() == 0


class TestComments:
    """Tests for comment endpoints"""

    def test_add_comment(self, client, db_session, fake_deepl, test_post, spanish_auth_headers):
        response = client.post(
            f"/api/posts/{test_post['id']}/comments",
            json={'content': 'Me encanta', 'language_code': 'es'},
            headers=spanish_auth_headers,
        )
        assert response.status_code == 201

        data = client.get(f"/api/posts/{test_post['id']}?lang=en").get_json()
        assert [c['content'] for c in data['comments']] == ['Great post', '[EN-US] Me encanta']

    def test_new_comment_is_returned_in_reader_language(self, client, db_session, fake_deepl, test_post,
                                                        spanish_auth_headers):
        response = client.post(
            f"/api/posts/{test_post['id']}/comments?lang=fr",
            json={'content': 'Me encanta', 'language_code': 'es'},
            headers=spanish_auth_headers,
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data['content'] == '[FR] Me encanta'
        assert data['language_code'] == 'es'

    def test_comment_on_missing_post(self, client, db_session, auth_headers):
        response = client.post('/api/posts/999/comments', json={'content': 'Hello'}, headers=auth_headers)
        assert response.status_code == 404

    def test_delete_comment_purges_translations(self, client, db_session, fake_deepl, test_post, auth_headers):
        client.get(f"/api/posts/{test_post['id']}?lang=it")

        response = client.delete(
            f"/api/posts/{test_post['id']}/comments/{test_post['comment_id']}",
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.get_json()['translations_purged'] == 1
        assert Translation.query.filter_by(entity_type='Comment').count() == 0
        assert Translation.query.filter_by(entity_type='Post').count() == 2
