from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import NotFound
from app.models import Location, User
from app.schemas.location import LocationCreate, LocationOut, LocationUpdate
from app.services.auth_service import get_current_user, require_admin
from app.services.collaborators import Collaborators, get_collaborators
from app.services.traffic_service import location_traffic

router = APIRouter(prefix="/api/locations", tags=["locations"])


def _get_location(db: Session, location_id: str) -> Location:
    location = db.get(Location, location_id)
    if location is None:
        raise NotFound("Location not found")
    return location


@router.get("", response_model=list[LocationOut])
def list_locations(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = db.query(Location).filter(Location.is_active.is_(True))
    if current_user.team_id:
        query = query.filter(or_(Location.team_id == current_user.team_id, Location.team_id.is_(None)))
    return query.order_by(Location.name).all()


@router.get("/{location_id}", response_model=LocationOut)
def get_location(location_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _get_location(db, location_id)


@router.get("/{location_id}/traffic")
async def get_location_traffic(
    location_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    return await location_traffic(collaborators, _get_location(db, location_id))


@router.post("", response_model=LocationOut)
def create_location(request: LocationCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    location = Location(**request.model_dump(), team_id=admin.team_id)
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


@router.put("/{location_id}", response_model=LocationOut)
def update_location(
    location_id: str,
    request: LocationUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    location = _get_location(db, location_id)
    for key, value in request.model_dump(exclude_unset=True).items():
        setattr(location, key, value)
    db.commit()
    db.refresh(location)
    return location


@router.delete("/{location_id}")
def deactivate_location(location_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    location = _get_location(db, location_id)
    location.is_active = False
    db.commit()
    return {"msg": "Location deactivated"}
