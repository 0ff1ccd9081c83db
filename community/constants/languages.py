"""Language constants: single source of truth for translation code mapping.

Maps browser locale codes (BCP-47) to DeepL language codes and back.
Every helper here is total: unknown or malformed codes resolve to a safe
default instead of raising.
"""

import re

DEFAULT_LANGUAGE = 'en'

# DeepL supported languages with their display names
SUPPORTED_LANGUAGES = {
    'en': {'name': 'English', 'native_name': 'English', 'deepl_code': 'EN-US'},
    'de': {'name': 'German', 'native_name': 'Deutsch', 'deepl_code': 'DE'},
    'es': {'name': 'Spanish', 'native_name': 'Español', 'deepl_code': 'ES'},
    'fr': {'name': 'French', 'native_name': 'Français', 'deepl_code': 'FR'},
    'it': {'name': 'Italian', 'native_name': 'Italiano', 'deepl_code': 'IT'},
    'ja': {'name': 'Japanese', 'native_name': '日本語', 'deepl_code': 'JA'},
    'ko': {'name': 'Korean', 'native_name': '한국어', 'deepl_code': 'KO'},
    'nl': {'name': 'Dutch', 'native_name': 'Nederlands', 'deepl_code': 'NL'},
    'pl': {'name': 'Polish', 'native_name': 'Polski', 'deepl_code': 'PL'},
    'pt': {'name': 'Portuguese', 'native_name': 'Português', 'deepl_code': 'PT-BR'},
    'ru': {'name': 'Russian', 'native_name': 'Русский', 'deepl_code': 'RU'},
    'zh': {'name': 'Chinese', 'native_name': '中文', 'deepl_code': 'ZH-HANS'},
    'ar': {'name': 'Arabic', 'native_name': 'العربية', 'deepl_code': 'AR'},
    'bg': {'name': 'Bulgarian', 'native_name': 'Български', 'deepl_code': 'BG'},
    'cs': {'name': 'Czech', 'native_name': 'Čeština', 'deepl_code': 'CS'},
    'da': {'name': 'Danish', 'native_name': 'Dansk', 'deepl_code': 'DA'},
    'el': {'name': 'Greek', 'native_name': 'Ελληνικά', 'deepl_code': 'EL'},
    'et': {'name': 'Estonian', 'native_name': 'Eesti', 'deepl_code': 'ET'},
    'fi': {'name': 'Finnish', 'native_name': 'Suomi', 'deepl_code': 'FI'},
    'hu': {'name': 'Hungarian', 'native_name': 'Magyar', 'deepl_code': 'HU'},
    'id': {'name': 'Indonesian', 'native_name': 'Bahasa Indonesia', 'deepl_code': 'ID'},
    'lt': {'name': 'Lithuanian', 'native_name': 'Lietuvių', 'deepl_code': 'LT'},
    'lv': {'name': 'Latvian', 'native_name': 'Latviešu', 'deepl_code': 'LV'},
    'nb': {'name': 'Norwegian', 'native_name': 'Norsk', 'deepl_code': 'NB'},
    'ro': {'name': 'Romanian', 'native_name': 'Română', 'deepl_code': 'RO'},
    'sk': {'name': 'Slovak', 'native_name': 'Slovenčina', 'deepl_code': 'SK'},
    'sl': {'name': 'Slovenian', 'native_name': 'Slovenščina', 'deepl_code': 'SL'},
    'sv': {'name': 'Swedish', 'native_name': 'Svenska', 'deepl_code': 'SV'},
    'tr': {'name': 'Turkish', 'native_name': 'Türkçe', 'deepl_code': 'TR'},
    'uk': {'name': 'Ukrainian', 'native_name': 'Українська', 'deepl_code': 'UK'},
}

# BCP-47 -> DeepL target codes (including regional variants)
DEEPL_TARGET_MAP = {
    'en': 'EN-US', 'en-us': 'EN-US', 'en-gb': 'EN-GB', 'en-au': 'EN-US',
    'pt': 'PT-BR', 'pt-br': 'PT-BR', 'pt-pt': 'PT-PT',
    'zh': 'ZH-HANS', 'zh-cn': 'ZH-HANS', 'zh-tw': 'ZH-HANT', 'zh-hans': 'ZH-HANS', 'zh-hant': 'ZH-HANT',
    'de': 'DE', 'de-de': 'DE', 'de-at': 'DE', 'de-ch': 'DE',
    'es': 'ES', 'es-es': 'ES', 'es-mx': 'ES', 'es-ar': 'ES',
    'fr': 'FR', 'fr-fr': 'FR', 'fr-ca': 'FR', 'fr-be': 'FR',
    'ja': 'JA', 'ko': 'KO', 'it': 'IT', 'nl': 'NL', 'pl': 'PL',
    'ru': 'RU', 'ar': 'AR', 'bg': 'BG', 'cs': 'CS', 'da': 'DA',
    'el': 'EL', 'et': 'ET', 'fi': 'FI', 'hu': 'HU', 'id': 'ID',
    'lt': 'LT', 'lv': 'LV', 'nb': 'NB', 'no': 'NB', 'ro': 'RO',
    'sk': 'SK', 'sl': 'SL', 'sv': 'SV', 'tr': 'TR', 'uk': 'UK',
}

DEFAULT_TARGET_CODE = 'EN-US'
DEFAULT_SOURCE_CODE = 'EN'

# Legacy/alias base codes -> current base code
LANGUAGE_ALIASES = {
    'no': 'nb',
}

# Preference endpoint accepts bare 2-3 letter codes
LANGUAGE_CODE_PATTERN = re.compile(r'^[a-z]{2,3}$', re.IGNORECASE)


def _clean(code) -> str:
    if not isinstance(code, str):
        return ''
    return code.strip().lower().replace('_', '-')


def normalize_language(code) -> str:
    """Normalize a locale to its base language code.

    - Lowercases and strips whitespace
    - Strips the regional suffix ('pt-BR' -> 'pt', 'zh_TW' -> 'zh')
    - Returns the default language for empty or non-string input
    """
    cleaned = _clean(code)
    if not cleaned:
        return DEFAULT_LANGUAGE
    base = cleaned.split('-')[0]
    if not base:
        return DEFAULT_LANGUAGE
    return LANGUAGE_ALIASES.get(base, base)


def is_supported(code) -> bool:
    """Check if a locale's base language is supported."""
    if not _clean(code):
        return False
    return normalize_language(code) in SUPPORTED_LANGUAGES


def to_provider_code(code, is_target: bool = True) -> str:
    """Convert a locale to a DeepL language code.

    DeepL wants regional variants only for *target* languages ('EN-US',
    'PT-BR'); source languages are always bare ('EN', 'PT'). Unknown codes
    fall back to English in either role.
    """
    cleaned = _clean(code)

    if is_target:
        if cleaned in DEEPL_TARGET_MAP:
            return DEEPL_TARGET_MAP[cleaned]
        base = normalize_language(cleaned)
        return DEEPL_TARGET_MAP.get(base, DEFAULT_TARGET_CODE)

    base = normalize_language(cleaned)
    if base in SUPPORTED_LANGUAGES:
        return base.upper()
    return DEFAULT_SOURCE_CODE


def from_provider_code(code) -> str:
    """Convert a DeepL code back to an ISO 639-1 base code ('EN-US' -> 'en')."""
    return normalize_language(code)


def get_language_info(code):
    """Get display info for a locale, or None if unsupported."""
    return SUPPORTED_LANGUAGES.get(normalize_language(code))


def get_language_name(code) -> str:
    """Get the native name for a language code."""
    info = get_language_info(code)
    if info:
        return info['native_name']
    return str(code or '').upper()


def same_base_language(first, second) -> bool:
    """True when two codes (any format) share a base language."""
    return normalize_language(first) == normalize_language(second)
