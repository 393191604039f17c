from dataclasses import asdict, dataclass
from typing import Optional

import httpx

from app.errors import DependencyUnavailable, ProviderRejected, ProviderTimeout
from app.logging_config import get_logger

logger = get_logger("maps_service")

AZURE_MAPS_BASE_URL = "https://atlas.microsoft.com"

TRAFFIC_DESCRIPTIONS = [
    "no traffic",
    "light traffic",
    "moderate traffic",
    "heavy traffic",
    "severe congestion",
]

HEAVY_TRAFFIC_LEVEL = 3
ALERT_TRAFFIC_LEVEL = 2


def traffic_level_from_speeds(current_speed: float, free_flow_speed: float, road_closure: bool = False) -> int:
    """Map the current/free-flow speed ratio onto the 0-4 traffic scale."""
    if road_closure:
        return 4
    if not free_flow_speed or free_flow_speed <= 0:
        return 0
    ratio = current_speed / free_flow_speed
    if ratio >= 0.85:
        return 0
    if ratio >= 0.65:
        return 1
    if ratio >= 0.45:
        return 2
    if ratio >= 0.25:
        return 3
    return 4


def describe_traffic(level: int) -> str:
    return TRAFFIC_DESCRIPTIONS[max(0, min(level, len(TRAFFIC_DESCRIPTIONS) - 1))]


@dataclass
class TrafficInfo:
    level: int
    description: str
    current_speed: float
    free_flow_speed: float
    current_travel_time: int
    free_flow_travel_time: int
    road_closure: bool = False

    def snapshot(self) -> dict:
        return {
            "trafficLevel": self.level,
            "trafficDescription": self.description,
            "travelTime": round(self.current_travel_time / 60) if self.current_travel_time else None,
        }


@dataclass
class RouteOption:
    length_meters: int
    travel_time_seconds: int
    traffic_delay_seconds: int

    @property
    def distance_km(self) -> float:
        return round(self.length_meters / 1000, 1)

    @property
    def travel_minutes(self) -> int:
        return round(self.travel_time_seconds / 60)

    @property
    def delay_minutes(self) -> int:
        return round(self.traffic_delay_seconds / 60)

    def to_dict(self) -> dict:
        return asdict(self)


class AzureMapsClient:
    """Traffic flow and routing lookups against Azure Maps."""

    def __init__(
        self,
        subscription_key: Optional[str],
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.subscription_key = subscription_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _get(self, path: str, params: dict) -> dict:
        if not self.subscription_key:
            raise DependencyUnavailable("Azure Maps is not configured")
        query = {"subscription-key": self.subscription_key, "api-version": "1.0", **params}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(f"{AZURE_MAPS_BASE_URL}{path}", params=query)
        except httpx.TimeoutException as exc:
            logger.warning("Azure Maps request timed out", extra={"context": {"path": path}})
            raise ProviderTimeout("Maps request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderRejected(f"Maps transport error: {exc}") from exc

        if response.status_code != 200:
            logger.error(
                "Azure Maps error response",
                extra={"context": {"path": path, "status": response.status_code, "body": response.text[:300]}},
            )
            raise ProviderRejected(f"Maps API error: {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderRejected("Maps API returned an unreadable body") from exc
        if not isinstance(data, dict):
            raise ProviderRejected("Maps API returned an unreadable body")
        return data

    async def get_traffic(self, latitude: float, longitude: float) -> TrafficInfo:
        data = await self._get(
            "/traffic/flow/segment/json",
            {"style": "absolute", "zoom": 10, "query": f"{latitude},{longitude}"},
        )
        segment = data.get("flowSegmentData") or {}
        current_speed = float(segment.get("currentSpeed") or 0)
        free_flow_speed = float(segment.get("freeFlowSpeed") or 0)
        road_closure = bool(segment.get("roadClosure"))
        level = traffic_level_from_speeds(current_speed, free_flow_speed, road_closure)
        return TrafficInfo(
            level=level,
            description=describe_traffic(level),
            current_speed=current_speed,
            free_flow_speed=free_flow_speed,
            current_travel_time=int(segment.get("currentTravelTime") or 0),
            free_flow_travel_time=int(segment.get("freeFlowTravelTime") or 0),
            road_closure=road_closure,
        )

    async def get_routes(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
        max_alternatives: int = 2,
    ) -> list[RouteOption]:
        data = await self._get(
            "/route/directions/json",
            {
                "query": f"{origin[0]},{origin[1]}:{destination[0]},{destination[1]}",
                "traffic": "true",
                "computeTravelTimeFor": "all",
                "routeType": "fastest",
                "maxAlternatives": max_alternatives,
            },
        )
        options = []
        for route in data.get("routes") or []:
            summary = route.get("summary") or {}
            options.append(
                RouteOption(
                    length_meters=int(summary.get("lengthInMeters") or 0),
                    travel_time_seconds=int(summary.get("travelTimeInSeconds") or 0),
                    traffic_delay_seconds=int(summary.get("trafficDelayInSeconds") or 0),
                )
            )
        return options
