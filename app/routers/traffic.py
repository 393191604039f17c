from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import NotFound
from app.models import Location, User
from app.services.auth_service import get_current_user
from app.services.collaborators import Collaborators, get_collaborators
from app.services.traffic_service import commute, default_origin, route_between

router = APIRouter(prefix="/api/traffic", tags=["traffic"])


@router.get("/commute")
async def commute_route(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Today's shifts with travel time from the caller's default location."""
    return await commute(db, collaborators, current_user)


@router.get("/route")
async def route_route(
    origin_id: str,
    destination_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    origin = db.get(Location, origin_id)
    destination = db.get(Location, destination_id)
    if origin is None or destination is None:
        raise NotFound("One or both locations not found")
    return await route_between(collaborators, origin, destination)


@router.get("/location/{location_id}")
async def location_route(
    location_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    origin = default_origin(db, current_user)
    destination = db.get(Location, location_id)
    if destination is None:
        raise NotFound("Destination location not found")
    return await route_between(collaborators, origin, destination)
