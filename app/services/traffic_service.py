"""Commute and point-to-point traffic lookups behind the traffic endpoints."""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import AppError, ProviderRejected, ValidationFailed
from app.logging_config import get_logger
from app.models import Location, User
from app.services.collaborators import Collaborators
from app.services.handlers.schedule_query import schedules_for_user
from app.timeutils import ensure_utc, format_local_time, local_today, utcnow

logger = get_logger("traffic_service")

DEPARTURE_BUFFER = timedelta(minutes=10)
NO_DEFAULT_LOCATION = "Default location not set. Please set your default location to get traffic information."


def location_summary(location: Location) -> dict:
    return {
        "id": location.id,
        "name": location.name,
        "address": location.address,
        "city": location.city,
        "latitude": location.latitude,
        "longitude": location.longitude,
    }


def suggested_departure(start_time: datetime, travel_minutes: int) -> datetime:
    return ensure_utc(start_time) - timedelta(minutes=travel_minutes) - DEPARTURE_BUFFER


def default_origin(db: Session, user: User) -> Location:
    origin = db.get(Location, user.default_location_id) if user.default_location_id else None
    if origin is None:
        raise ValidationFailed(NO_DEFAULT_LOCATION)
    return origin


async def route_between(collaborators: Collaborators, origin: Location, destination: Location) -> dict:
    """Fastest route with its traffic, plus the congestion level at the destination."""
    routes = await collaborators.maps.get_routes(origin.coordinates, destination.coordinates, max_alternatives=0)
    if not routes:
        raise ProviderRejected("Maps API returned no route")
    best = routes[0]
    traffic = await collaborators.maps.get_traffic(destination.latitude, destination.longitude)
    return {
        "origin": location_summary(origin),
        "destination": location_summary(destination),
        "traffic": {
            "condition": traffic.description,
            "level": traffic.level,
            "travelTimeMinutes": best.travel_minutes,
            "delayMinutes": best.delay_minutes,
            "distance": best.distance_km,
        },
    }


async def location_traffic(collaborators: Collaborators, location: Location, now: Optional[datetime] = None) -> dict:
    traffic = await collaborators.maps.get_traffic(location.latitude, location.longitude)
    return {
        "location": location_summary(location),
        "traffic": {
            **traffic.snapshot(),
            "currentSpeed": traffic.current_speed,
            "freeFlowSpeed": traffic.free_flow_speed,
            "roadClosure": traffic.road_closure,
        },
        "timestamp": (now or utcnow()).isoformat(),
    }


async def commute(db: Session, collaborators: Collaborators, user: User, now: Optional[datetime] = None) -> dict:
    """Travel from the user's default location to each of today's shifts.

    A shift whose lookup fails is left out rather than failing the whole answer.
    """
    origin = default_origin(db, user)
    today = local_today(now)
    schedules = schedules_for_user(db, user.id, today, today + timedelta(days=1))
    result = {"defaultLocation": location_summary(origin), "trafficInfo": []}
    if not schedules:
        result["msg"] = "No schedules found for today"
        return result

    for schedule in schedules:
        location = db.get(Location, schedule.location_id)
        if location is None:
            continue
        try:
            leg = await route_between(collaborators, origin, location)
        except AppError as exc:
            logger.warning(
                "Commute lookup failed",
                extra={"context": {"user_id": user.id, "schedule_id": schedule.id, "error": exc.message}},
            )
            continue
        departure = suggested_departure(schedule.start_time, leg["traffic"]["travelTimeMinutes"])
        result["trafficInfo"].append(
            {
                "scheduleId": schedule.id,
                "scheduleTitle": schedule.title,
                "startTime": format_local_time(schedule.start_time),
                "location": leg["destination"],
                "traffic": {**leg["traffic"], "suggestedDepartureTime": format_local_time(departure)},
            }
        )
    return result
