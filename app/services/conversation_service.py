from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Conversation, ConversationMessage
from app.timeutils import ensure_utc, utcnow

logger = get_logger("conversation_service")

CONVERSATION_TTL = timedelta(hours=24)
DEFAULT_HISTORY_TURNS = 10


def _delete_conversations(db: Session, conversation_ids: list[str]) -> int:
    if not conversation_ids:
        return 0
    db.query(ConversationMessage).filter(
        ConversationMessage.conversation_id.in_(conversation_ids)
    ).delete(synchronize_session=False)
    return (
        db.query(Conversation)
        .filter(Conversation.id.in_(conversation_ids))
        .delete(synchronize_session=False)
    )


def find_active(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[Conversation]:
    """Active conversation whose last activity is still inside the 24h TTL."""
    cutoff = (now or utcnow()) - CONVERSATION_TTL
    return (
        db.query(Conversation)
        .filter(
            Conversation.user_id == user_id,
            Conversation.active.is_(True),
            Conversation.last_activity >= cutoff,
        )
        .first()
    )


def fetch_active(
    db: Session, user_id: str, platform: str = "whatsapp", now: Optional[datetime] = None
) -> Conversation:
    """Return the user's live conversation, creating one if none is reachable."""
    now = now or utcnow()
    conversation = find_active(db, user_id, now=now)
    if conversation:
        return conversation

    # Anything left for this user is past its TTL.
    stale_ids = [row.id for row in db.query(Conversation.id).filter(Conversation.user_id == user_id)]
    if stale_ids:
        _delete_conversations(db, stale_ids)
        logger.info(
            "Expired conversations discarded",
            extra={"context": {"user_id": user_id, "count": len(stale_ids)}},
        )

    conversation = Conversation(
        user_id=user_id,
        platform=platform,
        context={},
        active=True,
        created_at=now,
        last_activity=now,
    )
    db.add(conversation)
    try:
        db.flush()
    except IntegrityError:
        # Another worker created it first.
        db.rollback()
        existing = find_active(db, user_id, now=now)
        if existing is None:
            raise
        return existing
    return conversation


def append(
    db: Session,
    conversation: Conversation,
    sender: str,
    content: str,
    audio_ref: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ConversationMessage:
    """Insert one log entry and bump ``last_activity``."""
    now = now or utcnow()
    message = ConversationMessage(
        conversation_id=conversation.id,
        sender=sender,
        content=content,
        audio_ref=audio_ref,
        created_at=now,
    )
    db.add(message)

    previous = ensure_utc(conversation.last_activity)
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    conversation.last_activity = now
    db.flush()
    return message


def update_context(db: Session, conversation: Conversation, slots: dict) -> dict:
    """Overwrite the given slots; other keys are left untouched."""
    if not slots:
        return dict(conversation.context or {})
    context = dict(conversation.context or {})
    context.update(slots)
    conversation.context = context
    db.flush()
    return context


def recent_messages(
    db: Session, conversation: Conversation, limit: int = DEFAULT_HISTORY_TURNS
) -> list[ConversationMessage]:
    rows = (
        db.query(ConversationMessage)
        .filter(ConversationMessage.conversation_id == conversation.id)
        .order_by(ConversationMessage.id.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(rows))


def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
    """Delete conversations idle for longer than the TTL. Returns the count."""
    cutoff = (now or utcnow()) - CONVERSATION_TTL
    expired_ids = [
        row.id for row in db.query(Conversation.id).filter(Conversation.last_activity < cutoff)
    ]
    deleted = _delete_conversations(db, expired_ids)
    if deleted:
        logger.info("Expired conversations purged", extra={"context": {"count": deleted}})
    return deleted


def in_service_window(db: Session, user_id: str, now: Optional[datetime] = None) -> bool:
    return find_active(db, user_id, now=now) is not None
