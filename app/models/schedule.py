from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Table, Text
from sqlalchemy.orm import relationship

from app.database import Base, JSONType, new_id
from app.timeutils import utcnow

schedule_assignments = Table(
    "schedule_assignments",
    Base.metadata,
    Column("schedule_id", String(24), ForeignKey("schedules.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(24), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


def default_schedule_notifications() -> dict:
    return {"email": True, "whatsapp": True, "reminderHours": 24}


class Schedule(Base):
    __tablename__ = "schedules"

    id = Column(String(24), primary_key=True, default=new_id)
    title = Column(Text, nullable=False)
    description = Column(Text)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    location_id = Column(String(24), ForeignKey("locations.id"), nullable=False)
    status = Column(Text, nullable=False, default="scheduled")  # scheduled, in-progress, completed, cancelled
    allow_auto_replacement = Column(Boolean, nullable=False, default=False)
    notification_preferences = Column(JSONType, nullable=False, default=default_schedule_notifications)
    created_by = Column(String(24))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    employees = relationship("User", secondary=schedule_assignments, lazy="selectin")

    @property
    def employee_ids(self) -> list[str]:
        return [employee.id for employee in self.employees]

    def is_assigned(self, user_id: str) -> bool:
        return user_id in self.employee_ids
