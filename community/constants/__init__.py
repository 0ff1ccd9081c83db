"""Shared constants for the application."""

from community.constants.languages import (
    DEFAULT_LANGUAGE,
    SUPPORTED_LANGUAGES,
    LANGUAGE_CODE_PATTERN,
    normalize_language,
    is_supported,
    to_provider_code,
    from_provider_code,
    get_language_info,
    get_language_name,
    same_base_language,
)

__all__ = [
    'DEFAULT_LANGUAGE',
    'SUPPORTED_LANGUAGES',
    'LANGUAGE_CODE_PATTERN',
    'normalize_language',
    'is_supported',
    'to_provider_code',
    'from_provider_code',
    'get_language_info',
    'get_language_name',
    'same_base_language',
]
