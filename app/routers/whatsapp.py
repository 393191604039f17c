import json
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.errors import Forbidden, NotFound, ProviderRejected
from app.logging_config import get_logger, mask_phone
from app.models import Conversation, User
from app.schemas.whatsapp import (
    ConversationDetail,
    ConversationOut,
    SendMessageRequest,
    WhatsAppSettingsOut,
    WhatsAppSettingsUpdate,
)
from app.services.agent_service import find_user_by_phone, process_webhook_payload
from app.services.auth_service import require_admin
from app.services.collaborators import Collaborators, get_collaborators
from app.services.notification_service import send_direct_whatsapp
from app.services.whatsapp_settings_service import get_whatsapp_settings, update_whatsapp_settings

logger = get_logger("whatsapp_router")

router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp"])


@router.get("/webhook")
def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    expected = settings.whatsapp_verify_token
    if mode == "subscribe" and expected and token == expected:
        logger.info("Webhook verified")
        return PlainTextResponse(challenge or "")
    logger.warning("Webhook verification rejected", extra={"context": {"mode": mode}})
    raise Forbidden("Verification failed")


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Acknowledge immediately; the provider retries anything slower than its timeout."""
    raw = await request.body()
    try:
        payload = json.loads(raw or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Webhook body is not JSON", extra={"context": {"error": str(exc)}})
        return PlainTextResponse("EVENT_RECEIVED")

    if isinstance(payload, dict):
        background_tasks.add_task(process_webhook_payload, payload, collaborators)
    return PlainTextResponse("EVENT_RECEIVED")


@router.post("/send")
async def send_message(
    request: SendMessageRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    recipient = find_user_by_phone(db, request.phone)
    if recipient is None:
        raise NotFound("No user registered with this phone number")
    result = await send_direct_whatsapp(db, collaborators, recipient, request.message)
    db.commit()
    if not result.ok:
        raise ProviderRejected(result.error or "WhatsApp send failed")
    logger.info("Admin WhatsApp sent", extra={"context": {"to": mask_phone(recipient.phone), "admin": admin.id}})
    return {"success": True, "messageId": result.value}


@router.get("/conversations", response_model=list[ConversationOut])
def list_conversations(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return (
        db.query(Conversation)
        .filter(Conversation.active.is_(True))
        .order_by(Conversation.last_activity.desc())
        .all()
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
def get_conversation(conversation_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFound("Conversation not found")
    return conversation


@router.get("/settings", response_model=WhatsAppSettingsOut)
def read_settings(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    row = get_whatsapp_settings(db)
    db.commit()
    return row


@router.put("/settings", response_model=WhatsAppSettingsOut)
def write_settings(
    request: WhatsAppSettingsUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    changes = request.model_dump(exclude_unset=True)
    row = update_whatsapp_settings(db, changes)
    db.commit()
    db.refresh(row)
    if "templates" in changes:
        collaborators.templates.invalidate()
    logger.info("WhatsApp settings updated", extra={"context": {"fields": sorted(changes), "admin": admin.id}})
    return row
