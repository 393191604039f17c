from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from app.database import Base, JSONType, new_id
from app.timeutils import utcnow


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        Index(
            "uq_conversations_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
    )

    id = Column(String(24), primary_key=True, default=new_id)
    user_id = Column(String(24), ForeignKey("users.id"), nullable=False)
    platform = Column(Text, nullable=False, default="whatsapp")  # whatsapp, voice, web
    context = Column(JSONType, nullable=False, default=dict)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_activity = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        order_by="ConversationMessage.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ConversationMessage(Base):
    """One entry of a conversation log; rows are only ever inserted."""

    __tablename__ = "conversation_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        String(24), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender = Column(Text, nullable=False)  # user, system
    content = Column(Text, nullable=False)
    audio_ref = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")
