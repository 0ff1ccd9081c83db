"""Translation API routes.

Server-side proxy for DeepL requests. Hides the API key from the client
and serves repeated texts from the database cache.
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from community import limiter
from community.constants.languages import (
    DEFAULT_LANGUAGE,
    same_base_language,
    to_provider_code,
)
from community.services import deepl
from community.services.translation import get_user_language, t_many, translate_texts
from community.utils import get_client_ip, token_optional

logger = logging.getLogger(__name__)

translate_bp = Blueprint('translate', __name__)

# Limit batch size to prevent abuse
MAX_TEXTS_PER_REQUEST = 100


def _translate_rate_limit():
    return current_app.config['TRANSLATE_RATE_LIMIT']


@translate_bp.route('', methods=['POST'])
@limiter.limit(_translate_rate_limit, key_func=get_client_ip)
def translate():
    """Translate a batch of texts.

    Body: {texts: string[], targetLang: string, sourceLang?: string}
    Omitting sourceLang lets DeepL auto-detect the source language.
    """
    data = request.get_json(silent=True) or {}
    texts = data.get('texts')
    target_lang = data.get('targetLang')
    source_lang = data.get('sourceLang')

    # Validate request
    if not texts or not isinstance(texts, list) or not all(isinstance(text, str) for text in texts):
        return jsonify({'error': 'texts must be a non-empty array of strings'}), 400

    if not target_lang or not isinstance(target_lang, str):
        return jsonify({'error': 'targetLang is required and must be a string'}), 400

    if len(texts) > MAX_TEXTS_PER_REQUEST:
        return jsonify({'error': f'Maximum {MAX_TEXTS_PER_REQUEST} texts per request'}), 400

    if source_lang is not None and not isinstance(source_lang, str):
        return jsonify({'error': 'sourceLang must be a string'}), 400

    deepl_target = to_provider_code(target_lang, is_target=True)
    deepl_source = to_provider_code(source_lang, is_target=False) if source_lang else None

    # Skip translation if source is known and matches target (accounting for variants)
    if deepl_source and same_base_language(deepl_source, deepl_target):
        return jsonify({
            'translations': texts,
            'skipped': True,
            'message': 'Source and target languages match; returning original text',
        }), 200

    try:
        translations = translate_texts(texts, deepl_source, deepl_target)
    except Exception as e:
        logger.error(f"Translation API error: {e}")
        # Return original texts so the UI keeps working
        return jsonify({
            'error': 'Translation service temporarily unavailable',
            'translations': texts,
            'fallback': True,
        }), 500

    return jsonify({
        'translations': translations,
        'targetLang': deepl_target,
        'sourceLang': deepl_source,
    }), 200


@translate_bp.route('', methods=['GET'])
def health():
    """Health check: is the provider credential configured?"""
    configured = deepl.is_translation_enabled()
    return jsonify({
        'status': 'healthy' if configured else 'misconfigured',
        'message': 'Translation service is ready' if configured else 'DEEPL_API_KEY is not configured',
        'configured': configured,
    }), 200


@translate_bp.route('/ui', methods=['POST'])
@limiter.limit(_translate_rate_limit, key_func=get_client_ip)
@token_optional
def translate_ui(current_user_id):
    """Translate a string-keyed map of UI strings.

    Body: {texts: {key: text}, targetLang?: string, context?: string}
    Without targetLang the caller's stored preference is used.
    """
    data = request.get_json(silent=True) or {}
    texts = data.get('texts')
    context = data.get('context') or 'general'

    if not texts or not isinstance(texts, dict) or not all(isinstance(v, str) for v in texts.values()):
        return jsonify({'error': 'texts must be a non-empty object of strings'}), 400

    if len(texts) > MAX_TEXTS_PER_REQUEST:
        return jsonify({'error': f'Maximum {MAX_TEXTS_PER_REQUEST} texts per request'}), 400

    target_lang = data.get('targetLang') or get_user_language(current_user_id)
    if not isinstance(target_lang, str):
        return jsonify({'error': 'targetLang must be a string'}), 400

    if same_base_language(target_lang, DEFAULT_LANGUAGE):
        return jsonify({'translations': texts, 'language': DEFAULT_LANGUAGE}), 200

    translations = t_many(texts, target_lang, context=str(context)[:64])
    return jsonify({'translations': translations, 'language': target_lang}), 200
