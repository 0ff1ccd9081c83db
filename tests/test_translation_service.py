"""
Tests for the translation orchestrator.
"""

from community.models import Translation
from community.services import translation
from community.services.translation_cache import get_cached_translation, hash_content


class TestTranslateForUser:
    """Tests for translate_for_user"""

    def test_same_language_is_untouched(self, db_session, fake_deepl):
        result = translation.translate_for_user('Post', 1, 'content', 'Hello', 'en', 'en-GB')
        assert result == 'Hello'
        assert fake_deepl.calls == []
        assert Translation.query.count() == 0

    def test_empty_content_is_untouched(self, db_session, fake_deepl):
        assert translation.translate_for_user('Post', 1, 'content', '', 'en', 'es') == ''
        assert fake_deepl.calls == []

    def test_miss_then_hit(self, db_session, fake_deepl):
        fake_deepl.dictionary[('Hello world', 'ES')] = 'Hola mundo'

        first = translation.translate_for_user('Post', 1, 'content', 'Hello world', 'en', 'es')
        second = translation.translate_for_user('Post', 1, 'content', 'Hello world', 'en', 'es')

        assert first == second == 'Hola mundo'
        assert len(fake_deepl.calls) == 1

        row = get_cached_translation('Post', 1, 'content', 'es')
        assert row.source_hash == hash_content('Hello world')
        assert row.model_provider == 'deepl'

    def test_edited_content_is_retranslated(self, db_session, fake_deepl):
        translation.translate_for_user('Post', 1, 'content', 'Hello', 'en', 'es')
        result = translation.translate_for_user('Post', 1, 'content', 'Hello again', 'en', 'es')

        assert result == '[ES] Hello again'
        assert len(fake_deepl.calls) == 2
        assert Translation.query.count() == 1

    def test_provider_failure_returns_content_and_writes_nothing(self, db_session, fake_deepl):
        fake_deepl.fail = True
        result = translation.translate_for_user('Post', 1, 'content', 'Hello world', 'en', 'es')

        assert result == 'Hello world'
        assert Translation.query.count() == 0


class TestBatchHelpers:
    """Tests for record and UI batch helpers"""

    def test_translate_many_preserves_other_fields(self, db_session, fake_deepl):
        record = {'id': 7, 'title': 'Hi there', 'content': 'Body text', 'likes': 3}
        result = translation.translate_many(record, ['title', 'content'], 'Post', 7, 'en', 'de')

        assert result == {'id': 7, 'title': '[DE] Hi there', 'content': '[DE] Body text', 'likes': 3}
        assert record['title'] == 'Hi there'

    def test_posts_keep_order_and_skip_same_language(self, db_session, fake_deepl):
        posts = [
            {'id': 1, 'title': 'First', 'content': 'One', 'language_code': 'en'},
            {'id': 2, 'title': 'Zweiter', 'content': 'Zwei', 'language_code': 'de'},
            {'id': 3, 'title': None, 'content': 'Three'},
        ]
        result = translation.translate_posts_for_user(posts, 'de')

        assert [post['id'] for post in result] == [1, 2, 3]
        assert result[0]['title'] == '[DE] First'
        assert result[1]['content'] == 'Zwei'
        assert result[2]['title'] is None
        assert result[2]['content'] == '[DE] Three'
        assert 'Zwei' not in fake_deepl.texts_sent

    def test_duplicate_content_is_sent_once(self, db_session, fake_deepl):
        comments = [
            {'id': 1, 'content': 'Thanks!', 'language_code': 'en'},
            {'id': 2, 'content': 'Thanks!', 'language_code': 'en'},
        ]
        result = translation.translate_comments_for_user(comments, 'fr')

        assert [c['content'] for c in result] == ['[FR] Thanks!', '[FR] Thanks!']
        assert fake_deepl.texts_sent == ['Thanks!']
        # Both entities still get their own cache row
        assert Translation.query.count() == 2

    def test_single_item_failure_is_isolated(self, db_session, fake_deepl, monkeypatch):
        original = translation.deepl.translate_text

        def flaky(text, source, target):
            if text == 'Broken':
                raise RuntimeError('boom')
            return original(text, source, target)

        monkeypatch.setattr(translation.deepl, 'translate_text', flaky)
        result = translation.translate_ui_texts(['Save', 'Broken', 'Cancel'], 'en', 'es', context='button')

        assert result == ['[ES] Save', 'Broken', '[ES] Cancel']

    def test_t_many_preserves_keys(self, db_session, fake_deepl):
        result = translation.t_many({'save': 'Save', 'cancel': 'Cancel'}, 'it', context='button')

        assert list(result) == ['save', 'cancel']
        assert result == {'save': '[IT] Save', 'cancel': '[IT] Cancel'}

        row = get_cached_translation('UI', 'button', 'save', 'it')
        assert row.translated_content == '[IT] Save'

    def test_ui_field_name_is_slugged(self, db_session, fake_deepl):
        translation.t('Create a new post', 'es', context='placeholder')
        assert get_cached_translation('UI', 'placeholder', 'create_a_new_post', 'es') is not None

    def test_translate_objects_uses_allow_list(self, db_session, fake_deepl):
        categories = [{'slug': 'general', 'name': 'General', 'description': 'Anything goes'}]
        result = translation.translate_objects(categories, ['name'], 'en', 'es', context='category')

        assert result == [{'slug': 'general', 'name': '[ES] General', 'description': 'Anything goes'}]


class TestTranslateTexts:
    """Tests for content-addressed translate_texts"""

    def test_misses_go_out_in_one_batch(self, db_session, fake_deepl):
        result = translation.translate_texts(['Hello', '', 'World', 'Hello'], None, 'ES')

        assert result == ['[ES] Hello', '', '[ES] World', '[ES] Hello']
        assert len(fake_deepl.calls) == 1
        assert fake_deepl.texts_sent == ['Hello', 'World']

    def test_second_request_is_served_from_cache(self, db_session, fake_deepl):
        translation.translate_texts(['Hello'], 'EN', 'ES')
        result = translation.translate_texts(['Hello', 'New'], 'EN', 'ES')

        assert result == ['[ES] Hello', '[ES] New']
        assert fake_deepl.texts_sent == ['Hello', 'New']

        row = get_cached_translation('Text', hash_content('Hello'), 'text', 'es')
        assert row.source_language == 'en'

    def test_auto_detected_source_is_recorded(self, db_session, fake_deepl):
        translation.translate_texts(['Hello'], None, 'PT-BR')
        row = get_cached_translation('Text', hash_content('Hello'), 'text', 'pt-br')
        assert row.source_language == 'auto'


class TestLanguageHelpers:
    """Tests for detect_language / get_user_language"""

    def test_detect_language(self, fake_deepl):
        fake_deepl.detected_source = 'FR'
        assert translation.detect_language('Bonjour tout le monde') == 'fr'

    def test_detect_language_defaults(self, no_deepl_key):
        assert translation.detect_language('Bonjour') == 'en'
        assert translation.detect_language('') == 'en'

    def test_user_language(self, app, spanish_user):
        with app.app_context():
            assert translation.get_user_language(spanish_user['id']) == 'es'
            assert translation.get_user_language(None) == 'en'
            assert translation.get_user_language(99999) == 'en'
