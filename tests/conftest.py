import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["WHATSAPP_VERIFY_TOKEN"] = "verify-me"
os.environ["LOCAL_TIMEZONE"] = "UTC"

from datetime import date, datetime, time, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402

from app import models  # noqa: E402,F401
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.errors import AppError  # noqa: E402
from app.models import Location, Schedule, User  # noqa: E402
from app.services.auth_service import create_token, hash_password  # noqa: E402
from app.services.collaborators import Collaborators  # noqa: E402
from app.services.handlers.base import Turn  # noqa: E402
from app.services.llm import LLMProvider, LLMResponse  # noqa: E402
from app.services.maps_service import RouteOption, TrafficInfo, describe_traffic  # noqa: E402
from app.services.message_policy import TemplateRegistry  # noqa: E402
from app.services.result import Result  # noqa: E402
from app.services.whatsapp_settings_service import get_whatsapp_settings  # noqa: E402

# Monday 2026-10-19, 08:00 UTC
NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


class FakeLLM(LLMProvider):
    """Replies are consumed in order; once exhausted ``default`` is returned."""

    def __init__(self, replies: Optional[list] = None, default: str = "general_question"):
        self.replies = list(replies or [])
        self.default = default
        self.calls = []

    async def generate(self, messages, temperature=0.7, max_tokens=500, timeout_seconds=None):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model="fake")


class FakeWhatsApp:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.texts = []
        self.templates = []

    async def send_text(self, to, body):
        self.texts.append((to, body))
        if self.fail:
            return Result.failure("WhatsApp API error: 500", code="provider_rejected")
        return Result.success(f"wamid.{len(self.texts)}")

    async def send_template(self, to, template_id, language, parameters):
        self.templates.append((to, template_id, language, list(parameters)))
        if self.fail:
            return Result.failure("WhatsApp API error: 500", code="provider_rejected")
        return Result.success(f"wamid.t{len(self.templates)}")


class FakeEmail:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send(self, to, subject, body):
        self.sent.append((to, subject, body))
        if self.fail:
            return Result.failure("SMTP down", code="provider_rejected")
        return Result.success(True)


class FakeMaps:
    def __init__(self, level: int = 1, routes: Optional[list] = None, error: Optional[AppError] = None):
        self.level = level
        self.routes = routes if routes is not None else [
            RouteOption(length_meters=12400, travel_time_seconds=1380, traffic_delay_seconds=240),
            RouteOption(length_meters=14100, travel_time_seconds=1500, traffic_delay_seconds=0),
            RouteOption(length_meters=15800, travel_time_seconds=1620, traffic_delay_seconds=60),
        ]
        self.error = error
        self.traffic_calls = []
        self.route_calls = []

    async def get_traffic(self, latitude, longitude):
        self.traffic_calls.append((latitude, longitude))
        if self.error:
            raise self.error
        return TrafficInfo(
            level=self.level,
            description=describe_traffic(self.level),
            current_speed=30.0,
            free_flow_speed=60.0,
            current_travel_time=600,
            free_flow_travel_time=300,
        )

    async def get_routes(self, origin, destination, max_alternatives=2):
        self.route_calls.append((origin, destination, max_alternatives))
        if self.error:
            raise self.error
        return list(self.routes)


class FakeMediaDecoder:
    default_language = "en-US"

    def __init__(self, transcript: str = "what's my schedule today", error: Optional[AppError] = None):
        self.transcript = transcript
        self.error = error
        self.calls = []

    async def decode(self, media_id, language=None):
        self.calls.append((media_id, language))
        if self.error:
            raise self.error
        return self.transcript


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def email_sender():
    return FakeEmail()


@pytest.fixture
def maps():
    return FakeMaps()


@pytest.fixture
def media():
    return FakeMediaDecoder()


@pytest.fixture
def collaborators(llm, whatsapp, email_sender, maps, media):
    return Collaborators(
        llm=llm,
        whatsapp=whatsapp,
        media=media,
        maps=maps,
        email=email_sender,
        templates=TemplateRegistry(),
        notification_concurrency=2,
        route_max_options=3,
        absence_date_order="MDY",
    )


@pytest.fixture
def turn(db, collaborators):
    settings_row = get_whatsapp_settings(db)
    db.commit()
    return Turn(db=db, collaborators=collaborators, settings=settings_row, now=NOW)


def make_user(
    db,
    name: str = "Alice Martin",
    role: str = "employee",
    phone: Optional[str] = "+15550001111",
    email: Optional[str] = None,
    department: Optional[str] = "Operations",
    password: str = "secret123",
    **fields,
) -> User:
    user = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        password_hash=hash_password(password),
        phone=phone,
        role=role,
        department=department,
        **fields,
    )
    db.add(user)
    db.flush()
    return user


def make_location(db, name: str = "Head Office", latitude: float = 45.5017, longitude: float = -73.5673, **fields):
    location = Location(
        name=name,
        address=fields.pop("address", "100 Main St"),
        city=fields.pop("city", "Montreal"),
        latitude=latitude,
        longitude=longitude,
        **fields,
    )
    db.add(location)
    db.flush()
    return location


def make_schedule(
    db,
    location: Location,
    employees: list,
    day: date = TODAY,
    start_hour: int = 9,
    end_hour: int = 17,
    title: str = "Morning shift",
    **fields,
) -> Schedule:
    schedule = Schedule(
        title=title,
        date=day,
        start_time=datetime.combine(day, time(start_hour), tzinfo=timezone.utc),
        end_time=datetime.combine(day, time(end_hour), tzinfo=timezone.utc),
        location_id=location.id,
        **fields,
    )
    schedule.employees = list(employees)
    db.add(schedule)
    db.flush()
    return schedule


def auth_headers(user: User) -> dict:
    return {"x-auth-token": create_token(user)}


@pytest.fixture
def client(db, collaborators):
    from fastapi.testclient import TestClient

    from app.main import app
    from app.services.collaborators import get_collaborators

    app.dependency_overrides[get_collaborators] = lambda: collaborators
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
