import uuid

from sqlalchemy import Column, DateTime, String, Text

from app.database import Base, JSONType, new_id
from app.timeutils import utcnow


def generate_join_code() -> str:
    return uuid.uuid4().hex[:8].upper()


class Team(Base):
    __tablename__ = "teams"

    id = Column(String(24), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    owner_id = Column(String(24), nullable=False)
    join_code = Column(String(8), nullable=False, unique=True, default=generate_join_code)
    departments = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
