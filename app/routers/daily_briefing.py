from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Forbidden, NotFound
from app.models import User
from app.schemas.briefing import BriefingPreferencesUpdate, BriefingSendRequest
from app.services.auth_service import get_current_user
from app.services.briefing_service import build_daily_briefing, send_daily_briefing
from app.services.collaborators import Collaborators, get_collaborators

router = APIRouter(prefix="/api/daily-briefing", tags=["daily-briefing"])


@router.get("")
async def daily_briefing(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    return await build_daily_briefing(db, collaborators, current_user)


@router.post("/send")
async def send_briefing(
    request: BriefingSendRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Send a briefing now; admins may target anyone, employees only themselves."""
    user_id = request.user_id or current_user.id
    if user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Not authorized")
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    summary = await send_daily_briefing(db, collaborators, user, channel=request.channel, created_by=current_user.id)
    db.commit()
    msg = "Daily briefing sent successfully" if summary.sent else "Daily briefing could not be delivered"
    return {"msg": msg, **summary.as_dict(), "notification_ids": summary.notification_ids}


@router.put("/preferences")
def update_briefing_preferences(
    request: BriefingPreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    prefs = dict(current_user.notification_preferences or {})
    prefs.update(request.model_dump(exclude_none=True))
    current_user.notification_preferences = prefs
    db.commit()
    return prefs
