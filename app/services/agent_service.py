"""Inbound WhatsApp pipeline: decode, log, classify, handle, reply."""

import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.errors import AppError
from app.logging_config import ContextAdapter, get_logger, mask_phone
from app.models import Conversation, User, WhatsAppSettings
from app.schemas.whatsapp import InboundMessage, WebhookPayload
from app.services import conversation_service
from app.services.admin_commands import handle_admin_command
from app.services.collaborators import Collaborators
from app.services.handlers import (
    HandlerResult,
    Turn,
    handle_absence_request,
    handle_general_question,
    handle_route_query,
    handle_schedule_query,
    handle_traffic_query,
)
from app.services.intent_service import Intent, classify_intent, is_greeting
from app.services.language_service import speech_language
from app.services.message_policy import deliver, plan_message
from app.services.whatsapp_settings_service import get_whatsapp_settings
from app.timeutils import utcnow

logger = get_logger("agent_service")

Handler = Callable[[str, User, Conversation, Turn], Awaitable[HandlerResult]]

HANDLERS: dict[Intent, Handler] = {
    Intent.SCHEDULE_QUERY: handle_schedule_query,
    Intent.TRAFFIC_QUERY: handle_traffic_query,
    Intent.ROUTE_QUERY: handle_route_query,
    Intent.ABSENCE_REQUEST: handle_absence_request,
    Intent.ADMIN_COMMAND: handle_admin_command,
    Intent.GENERAL_QUESTION: handle_general_question,
}

UNKNOWN_NUMBER_REPLY = "This number is only for registered employees. Please contact your administrator."
UNSUPPORTED_TYPE_REPLY = "Only text and voice messages are supported."
VOICE_FAILURE_REPLY = "Couldn't process voice message. Please send text or try again later."
HANDLER_FAILURE_REPLY = "Sorry, I couldn't process that request. Please try again later."

EMPLOYEE_HINT = (
    "You can check your schedules, ask about traffic or routes to work, or request an absence. "
    "Try \"what's my schedule today\"."
)
ADMIN_HINT = (
    "As an admin you can also list users and schedules, broadcast messages, and approve or reject "
    "absences. Send \"help\" for the full list."
)


def parse_inbound(payload: dict) -> list[InboundMessage]:
    """Normalise a Meta webhook body; non-message events yield nothing."""
    body = WebhookPayload.model_validate(payload or {})
    if body.object != "whatsapp_business_account":
        return []

    inbound = []
    for entry in body.entry:
        for change in entry.changes:
            if change.field != "messages":
                continue
            for message in change.value.messages:
                if message.type == "text" and message.text is not None:
                    inbound.append(
                        InboundMessage(
                            phone=message.sender,
                            kind="text",
                            text=message.text.body,
                            message_id=message.id,
                            raw_type=message.type,
                        )
                    )
                elif message.type in ("audio", "voice") and message.audio is not None:
                    inbound.append(
                        InboundMessage(
                            phone=message.sender,
                            kind="audio",
                            media_id=message.audio.id,
                            message_id=message.id,
                            raw_type=message.type,
                        )
                    )
                else:
                    inbound.append(
                        InboundMessage(phone=message.sender, kind="other", message_id=message.id, raw_type=message.type)
                    )
    return inbound


def find_user_by_phone(db: Session, phone: str) -> Optional[User]:
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    if not digits:
        return None
    return db.query(User).filter(or_(User.phone == digits, User.phone == f"+{digits}")).first()


def welcome_text(user: User, settings_row: WhatsAppSettings) -> str:
    hint = ADMIN_HINT if user.is_admin else EMPLOYEE_HINT
    return f"Hello {user.name}! {settings_row.welcome_message}\n\n{hint}"


def truncate(text: str, limit: int) -> str:
    if limit and len(text) > limit:
        return text[: max(0, limit - 3)].rstrip() + "..."
    return text


async def _reply(db: Session, collaborators: Collaborators, user: User, text: str, now: datetime) -> None:
    message = plan_message(db, user, text, collaborators.templates, now=now)
    result = await deliver(collaborators.whatsapp, message)
    if not result.ok:
        logger.error(
            "Reply delivery failed",
            extra={"context": {"user_id": user.id, "error": result.error, "code": result.error_code}},
        )


async def process_inbound(
    db: Session,
    collaborators: Collaborators,
    inbound: InboundMessage,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Handle one inbound message end to end. Returns the reply that was sent."""
    now = now or utcnow()
    log = ContextAdapter(logger, {"message_id": inbound.message_id, "from": mask_phone(inbound.phone)})
    started = time.monotonic()

    settings_row = get_whatsapp_settings(db)
    db.commit()
    if not settings_row.enabled:
        log.info("WhatsApp agent disabled, message ignored")
        return None

    user = find_user_by_phone(db, inbound.phone)
    if user is None:
        log.warning("Message from unknown number")
        await collaborators.whatsapp.send_text(inbound.phone, UNKNOWN_NUMBER_REPLY)
        return UNKNOWN_NUMBER_REPLY

    if inbound.kind == "other":
        log.warning("Unsupported message type", context={"type": inbound.raw_type})
        await collaborators.whatsapp.send_text(inbound.phone, UNSUPPORTED_TYPE_REPLY)
        return UNSUPPORTED_TYPE_REPLY

    utterance = inbound.text
    if inbound.kind == "audio":
        try:
            utterance = await collaborators.media.decode(
                inbound.media_id, language=speech_language(user, collaborators.media.default_language)
            )
        except AppError as exc:
            log.warning("Voice message could not be decoded", context={"error_code": exc.code, "error": exc.message})
            await collaborators.whatsapp.send_text(inbound.phone, VOICE_FAILURE_REPLY)
            return VOICE_FAILURE_REPLY
        except Exception as exc:
            log.error("Voice decode crashed", context={"error": str(exc)}, exc_info=exc)
            await collaborators.whatsapp.send_text(inbound.phone, VOICE_FAILURE_REPLY)
            return VOICE_FAILURE_REPLY

    conversation = conversation_service.fetch_active(
        db, user.id, platform="voice" if inbound.kind == "audio" else "whatsapp", now=now
    )
    conversation_service.append(
        db,
        conversation,
        "user",
        utterance,
        audio_ref=inbound.media_id if inbound.kind == "audio" else None,
        now=now,
    )
    db.commit()

    turn = Turn(db=db, collaborators=collaborators, settings=settings_row, now=now)
    intent: Optional[Intent] = None
    if settings_row.auto_reply and is_greeting(utterance):
        result = HandlerResult(welcome_text(user, settings_row))
    else:
        if settings_row.ai_processing:
            intent = await classify_intent(utterance, collaborators.llm)
        else:
            intent = Intent.GENERAL_QUESTION
        try:
            result = await HANDLERS[intent](utterance, user, conversation, turn)
        except Exception as exc:
            db.rollback()
            log.error(
                "Intent handler failed",
                context={"intent": intent.value, "error": str(exc)},
                exc_info=True,
            )
            result = HandlerResult(HANDLER_FAILURE_REPLY)
        if intent == Intent.GENERAL_QUESTION:
            result.text = truncate(result.text, settings_row.max_response_length)

    updates = dict(result.context_updates)
    if intent is not None:
        updates["lastIntent"] = intent.value
    conversation_service.update_context(db, conversation, updates)
    conversation_service.append(db, conversation, "system", result.text, now=utcnow())
    db.commit()

    await _reply(db, collaborators, user, result.text, now)
    log.info(
        "Inbound message handled",
        context={
            "user_id": user.id,
            "intent": intent.value if intent else "greeting",
            "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
        },
    )
    return result.text


async def process_webhook_payload(
    payload: dict,
    collaborators: Collaborators,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    """Background entry point; the provider was already acknowledged, so nothing propagates."""
    try:
        messages = parse_inbound(payload)
    except Exception as exc:
        logger.warning("Webhook payload could not be parsed", extra={"context": {"error": str(exc)}})
        return

    for inbound in messages:
        db = session_factory()
        try:
            await process_inbound(db, collaborators, inbound)
        except Exception as exc:
            db.rollback()
            logger.error(
                "Webhook message processing failed",
                extra={"context": {"message_id": inbound.message_id, "error": str(exc)}},
                exc_info=True,
            )
        finally:
            db.close()
