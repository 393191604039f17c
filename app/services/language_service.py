from typing import Optional

from app.models import User

SUPPORTED_LANGUAGES = [
    {"code": "en-US", "name": "English (US)", "region": "United States"},
    {"code": "en-GB", "name": "English (UK)", "region": "United Kingdom"},
    {"code": "es-ES", "name": "Spanish", "region": "Spain"},
    {"code": "fr-FR", "name": "French", "region": "France"},
    {"code": "de-DE", "name": "German", "region": "Germany"},
    {"code": "it-IT", "name": "Italian", "region": "Italy"},
    {"code": "pt-BR", "name": "Portuguese", "region": "Brazil"},
    {"code": "zh-CN", "name": "Chinese (Simplified)", "region": "China"},
    {"code": "ja-JP", "name": "Japanese", "region": "Japan"},
    {"code": "ko-KR", "name": "Korean", "region": "South Korea"},
    {"code": "ar-SA", "name": "Arabic", "region": "Saudi Arabia"},
    {"code": "ru-RU", "name": "Russian", "region": "Russia"},
    {"code": "hi-IN", "name": "Hindi", "region": "India"},
    {"code": "nl-NL", "name": "Dutch", "region": "Netherlands"},
    {"code": "sv-SE", "name": "Swedish", "region": "Sweden"},
]

# Azure Speech short-audio locales offered to users.
VOICE_RECOGNITION_CODES = (
    "en-US", "en-GB", "es-ES", "fr-FR", "de-DE", "it-IT", "pt-BR", "zh-CN", "ja-JP", "ar-SA", "ru-RU", "hi-IN",
)
VOICE_RECOGNITION_LANGUAGES = [entry for entry in SUPPORTED_LANGUAGES if entry["code"] in VOICE_RECOGNITION_CODES]

SPEECH_LOCALES = {"en": "en-US", "fr": "fr-FR"}


def speech_language(user: User, default: str) -> str:
    """Locale for transcribing ``user``'s voice notes: explicit setting, then preferred language."""
    if user.voice_language:
        return user.voice_language
    preferred = (user.preferred_language or "").strip()
    if "-" in preferred:
        return preferred
    return SPEECH_LOCALES.get(preferred.lower(), default)


def is_voice_language(code: Optional[str]) -> bool:
    return code in VOICE_RECOGNITION_CODES
