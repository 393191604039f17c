from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.errors import ValidationFailed
from app.models import User
from app.schemas.language import LanguageSettingsUpdate
from app.services.auth_service import get_current_user
from app.services.language_service import (
    SUPPORTED_LANGUAGES,
    VOICE_RECOGNITION_LANGUAGES,
    is_voice_language,
    speech_language,
)

router = APIRouter(prefix="/api/language-settings", tags=["language-settings"])


def _settings_for(user: User) -> dict:
    return {
        "preferredLanguage": user.preferred_language,
        "voiceRecognitionLanguage": speech_language(user, settings.speech_language),
        "voiceRecognitionExplicit": bool(user.voice_language),
    }


@router.get("")
def get_language_settings(current_user: User = Depends(get_current_user)):
    return _settings_for(current_user)


@router.put("")
def update_language_settings(
    request: LanguageSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Null fields are left unchanged."""
    if request.voice_language is not None and not is_voice_language(request.voice_language):
        raise ValidationFailed("Unsupported voice recognition language")
    if request.preferred_language is not None:
        current_user.preferred_language = request.preferred_language
    if request.voice_language is not None:
        current_user.voice_language = request.voice_language
    db.commit()
    return _settings_for(current_user)


@router.get("/supported-languages")
def supported_languages():
    return SUPPORTED_LANGUAGES


@router.get("/voice-recognition-languages")
def voice_recognition_languages():
    return VOICE_RECOGNITION_LANGUAGES
