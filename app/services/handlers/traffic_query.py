from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import AppError
from app.logging_config import get_logger
from app.models import Conversation, Location, Schedule, User
from app.services.handlers.base import HandlerResult, Turn
from app.services.handlers.schedule_query import schedules_for_user
from app.services.maps_service import HEAVY_TRAFFIC_LEVEL
from app.timeutils import format_local_time, local_today

logger = get_logger("handlers.traffic")

NO_SCHEDULE_TODAY = "You don't have any schedules today, {name}, so there is no commute to check."
TRAFFIC_UNAVAILABLE = "Sorry, I couldn't get traffic information right now. Please try again later."
ROUTE_UNAVAILABLE = "Sorry, I couldn't get route information right now. Please try again later."
NO_ORIGIN = (
    "I don't know where you are starting from. Please ask your administrator to set a default "
    "location on your profile."
)
ALTERNATE_ROUTE_INVITE = "\n\nTraffic is heavy. Reply \"show me alternative routes\" to see other options."


def earliest_schedule_today(db: Session, user: User, turn: Turn) -> Optional[Schedule]:
    today = local_today(turn.now)
    schedules = schedules_for_user(db, user.id, today, today + timedelta(days=1))
    return schedules[0] if schedules else None


def location_slot(location: Location, schedule: Optional[Schedule] = None) -> dict:
    return {
        "id": location.id,
        "name": location.name,
        "address": location.address,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "scheduleId": schedule.id if schedule else None,
    }


def _resolve_today_location(user: User, turn: Turn) -> tuple[Optional[Schedule], Optional[Location]]:
    schedule = earliest_schedule_today(turn.db, user, turn)
    if schedule is None:
        return None, None
    return schedule, turn.db.get(Location, schedule.location_id)


async def handle_traffic_query(
    utterance: str, user: User, conversation: Conversation, turn: Turn
) -> HandlerResult:
    schedule, location = _resolve_today_location(user, turn)
    if schedule is None or location is None:
        return HandlerResult(NO_SCHEDULE_TODAY.format(name=user.name))

    slot = location_slot(location, schedule)
    try:
        traffic = await turn.collaborators.maps.get_traffic(location.latitude, location.longitude)
    except AppError as exc:
        logger.warning("Traffic lookup failed", extra={"context": {"user_id": user.id, "error": exc.message}})
        return HandlerResult(TRAFFIC_UNAVAILABLE, {"currentLocation": slot})

    text = (
        f"Traffic near {location.name} ({location.address}) for your {format_local_time(schedule.start_time)} "
        f"shift \"{schedule.title}\": {traffic.description}."
    )
    if traffic.current_travel_time:
        text += f" Current travel time through the area is about {max(1, round(traffic.current_travel_time / 60))} min."
    if traffic.level >= HEAVY_TRAFFIC_LEVEL:
        text += ALTERNATE_ROUTE_INVITE
    slot["trafficLevel"] = traffic.level
    return HandlerResult(text, {"currentLocation": slot})


def format_route_options(destination_name: str, options) -> str:
    lines = [f"Route options to {destination_name}:"]
    for index, option in enumerate(options, start=1):
        line = f"{index}. {option.distance_km} km, about {option.travel_minutes} min"
        if option.traffic_delay_seconds > 0:
            line += f" (includes {option.delay_minutes} min traffic delay)"
        lines.append(line)
    return "\n".join(lines)


async def handle_route_query(
    utterance: str, user: User, conversation: Conversation, turn: Turn
) -> HandlerResult:
    updates = {}
    slot = (conversation.context or {}).get("currentLocation")
    if not slot:
        schedule, location = _resolve_today_location(user, turn)
        if location is None:
            return HandlerResult(NO_SCHEDULE_TODAY.format(name=user.name))
        slot = location_slot(location, schedule)
        updates["currentLocation"] = slot

    origin_location = turn.db.get(Location, user.default_location_id) if user.default_location_id else None
    if origin_location is None:
        return HandlerResult(NO_ORIGIN, updates)

    max_options = turn.collaborators.route_max_options
    try:
        options = await turn.collaborators.maps.get_routes(
            (origin_location.latitude, origin_location.longitude),
            (slot["latitude"], slot["longitude"]),
            max_alternatives=max(0, max_options - 1),
        )
    except AppError as exc:
        logger.warning("Route lookup failed", extra={"context": {"user_id": user.id, "error": exc.message}})
        return HandlerResult(ROUTE_UNAVAILABLE, updates)

    options = options[:max_options]
    if not options:
        return HandlerResult(ROUTE_UNAVAILABLE, updates)

    updates["routeData"] = {
        "origin": location_slot(origin_location),
        "destination": slot,
        "routes": [option.to_dict() for option in options],
    }
    return HandlerResult(format_route_options(slot.get("name") or "your location", options), updates)
