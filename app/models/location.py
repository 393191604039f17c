from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text

from app.database import Base, new_id
from app.timeutils import utcnow


class Location(Base):
    __tablename__ = "locations"

    id = Column(String(24), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    state = Column(Text)
    postal_code = Column(Text)
    country = Column(Text)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    team_id = Column(String(24), ForeignKey("teams.id"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)
