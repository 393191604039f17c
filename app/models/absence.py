from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text

from app.database import Base, new_id
from app.timeutils import utcnow


class Absence(Base):
    __tablename__ = "absences"

    id = Column(String(24), primary_key=True, default=new_id)
    user_id = Column(String(24), ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = Column(String(24), ForeignKey("schedules.id"))
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    type = Column(Text, nullable=False, default="other")  # sick, vacation, personal, other
    status = Column(Text, nullable=False, default="pending")  # pending, approved, rejected, completed
    replacement_needed = Column(Boolean, nullable=False, default=False)
    replacement_id = Column(String(24), ForeignKey("users.id"))
    reviewed_by = Column(String(24))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
