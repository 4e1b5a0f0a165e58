"""Language codes, display names and validation."""
from .errors import InputValidationError


LANG_NAMES = {
    'ko': 'Korean', 'en': 'English', 'zh': 'Chinese',
    'zh-cn': 'Simplified Chinese', 'zh-tw': 'Traditional Chinese',
    'ja': 'Japanese', 'es': 'Spanish', 'fr': 'French', 'de': 'German',
    'ru': 'Russian', 'pt': 'Portuguese', 'it': 'Italian', 'vi': 'Vietnamese',
    'th': 'Thai', 'ar': 'Arabic', 'hi': 'Hindi', 'id': 'Indonesian',
    'nl': 'Dutch', 'pl': 'Polish', 'tr': 'Turkish', 'uk': 'Ukrainian',
    'sv': 'Swedish', 'cs': 'Czech', 'da': 'Danish', 'fi': 'Finnish',
    'el': 'Greek', 'hu': 'Hungarian', 'no': 'Norwegian', 'ro': 'Romanian',
    'bg': 'Bulgarian', 'hr': 'Croatian', 'sk': 'Slovak', 'sl': 'Slovenian',
    'lt': 'Lithuanian', 'lv': 'Latvian', 'et': 'Estonian',
    'ms': 'Malay', 'tl': 'Filipino', 'bn': 'Bengali', 'ta': 'Tamil',
    'te': 'Telugu', 'mr': 'Marathi', 'ur': 'Urdu', 'fa': 'Persian',
    'he': 'Hebrew', 'sw': 'Swahili', 'af': 'Afrikaans',
}

# Country codes people type by mistake
LANG_CORRECTIONS = {
    'kr': 'ko',
    'jp': 'ja',
    'cn': 'zh',
    'tw': 'zh-tw',
    'gb': 'en',
    'us': 'en',
    'br': 'pt',
    'mx': 'es',
}


def language_name(lang: str) -> str:
    """Human-readable name for a code; free-form names pass through."""
    return LANG_NAMES.get(lang.lower(), lang)


def lang_label(code: str) -> str:
    """Return 'code (Name)' if known, otherwise just code."""
    name = LANG_NAMES.get(code.lower())
    return f"{code} ({name})" if name else code


def validate_lang_code(code: str) -> str:
    """Normalize a target language.

    Known codes are lower-cased. Anything else that is not a country code is
    accepted verbatim so that names like "Classical Chinese" keep working.

    Raises:
        InputValidationError: For an empty value or a country code
    """
    if code is None or not code.strip():
        raise InputValidationError("Target language is required")
    code = code.strip()
    code_lower = code.lower()
    if code_lower in LANG_NAMES:
        return code_lower
    if code_lower in LANG_CORRECTIONS:
        correct = LANG_CORRECTIONS[code_lower]
        raise InputValidationError(
            f"'{code}' is a country code. Use language code '{correct}' ({LANG_NAMES[correct]}) instead."
        )
    return code
