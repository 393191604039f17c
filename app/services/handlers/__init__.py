from app.services.handlers.absence_request import handle_absence_request
from app.services.handlers.base import HandlerResult, Turn
from app.services.handlers.general_question import handle_general_question
from app.services.handlers.schedule_query import handle_schedule_query
from app.services.handlers.traffic_query import handle_route_query, handle_traffic_query

__all__ = [
    "HandlerResult",
    "Turn",
    "handle_schedule_query",
    "handle_traffic_query",
    "handle_route_query",
    "handle_absence_request",
    "handle_general_question",
]
