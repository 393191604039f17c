from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Index, String, Text, text

from app.database import Base, JSONType, new_id
from app.timeutils import utcnow


class HourTracking(Base):
    __tablename__ = "hour_tracking"
    __table_args__ = (
        Index(
            "uq_hour_tracking_active_per_day",
            "user_id",
            "date",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(String(24), primary_key=True, default=new_id)
    user_id = Column(String(24), ForeignKey("users.id"), nullable=False)
    schedule_id = Column(String(24), ForeignKey("schedules.id"), nullable=False)
    date = Column(Date, nullable=False)
    clock_in = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    clock_out = Column(DateTime(timezone=True))
    total_hours = Column(Float)
    status = Column(Text, nullable=False, default="active")  # active, completed
    location_id = Column(String(24), ForeignKey("locations.id"))
    traffic_snapshot = Column(JSONType)
    notes = Column(Text)
