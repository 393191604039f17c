from dataclasses import dataclass
from functools import lru_cache

from app.config import Settings, settings
from app.services.email_service import EmailSender
from app.services.llm import AzureOpenAIProvider, LLMProvider
from app.services.maps_service import AzureMapsClient
from app.services.message_policy import TemplateRegistry
from app.services.speech_service import AzureSpeechRecognizer, FfmpegTranscoder, MediaDecoder
from app.services.whatsapp_service import WhatsAppClient


@dataclass
class Collaborators:
    """External capabilities wired once at boot and handed to each request."""

    llm: LLMProvider
    whatsapp: WhatsAppClient
    media: MediaDecoder
    maps: AzureMapsClient
    email: EmailSender
    templates: TemplateRegistry
    notification_concurrency: int = 5
    route_max_options: int = 3
    absence_date_order: str = "MDY"


def build_collaborators(config: Settings) -> Collaborators:
    whatsapp = WhatsAppClient(
        token=config.whatsapp_token,
        phone_number_id=config.whatsapp_phone_number_id,
        api_version=config.whatsapp_api_version,
        timeout_seconds=config.send_timeout_seconds,
    )
    media = MediaDecoder(
        whatsapp=whatsapp,
        recognizer=AzureSpeechRecognizer(
            subscription_key=config.azure_speech_key,
            region=config.azure_speech_region,
            timeout_seconds=config.stt_timeout_seconds,
        ),
        transcoder=FfmpegTranscoder(
            ffmpeg_path=config.ffmpeg_path,
            timeout_seconds=config.transcode_timeout_seconds,
        ),
        default_language=config.speech_language,
    )
    return Collaborators(
        llm=AzureOpenAIProvider(
            endpoint=config.azure_openai_endpoint,
            api_key=config.azure_openai_key,
            deployment_id=config.azure_openai_deployment_id,
            api_version=config.azure_openai_api_version,
            timeout_seconds=config.llm_timeout_seconds,
        ),
        whatsapp=whatsapp,
        media=media,
        maps=AzureMapsClient(
            subscription_key=config.azure_maps_key,
            timeout_seconds=config.maps_timeout_seconds,
        ),
        email=EmailSender(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            sender=config.email_from,
            timeout_seconds=config.send_timeout_seconds,
        ),
        templates=TemplateRegistry(),
        notification_concurrency=max(1, config.notification_concurrency),
        route_max_options=max(1, config.route_max_options),
        absence_date_order=config.absence_date_order.upper(),
    )


@lru_cache(maxsize=1)
def get_collaborators() -> Collaborators:
    return build_collaborators(settings)
