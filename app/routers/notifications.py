from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Forbidden, NotFound, ValidationFailed
from app.models import Notification, User
from app.schemas.notification import DispatchResponse, NotificationCreate, NotificationOut
from app.services.auth_service import get_current_user, require_admin
from app.services.collaborators import Collaborators, get_collaborators
from app.services.notification_service import NotificationRequest, dispatch, run_traffic_alerts
from app.services.state_machine import InvalidTransitionError, NotificationStatus, transition
from app.timeutils import utcnow

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def my_notifications(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Notification)
        .filter(Notification.recipient_id == current_user.id)
        .order_by(Notification.created_at.desc())
        .all()
    )


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.recipient_id != current_user.id:
        raise Forbidden("Not authorized to update this notification")
    if notification.status != NotificationStatus.READ.value:
        try:
            notification.status = transition(
                NotificationStatus(notification.status), NotificationStatus.READ
            ).value
        except InvalidTransitionError as exc:
            raise ValidationFailed(f"Notification is {notification.status}") from exc
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)
    return notification


@router.post("", response_model=DispatchResponse)
async def send_notification(
    request: NotificationCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    recipient_ids = list(dict.fromkeys(request.recipient_ids))
    recipients = db.query(User).filter(User.id.in_(recipient_ids)).all()
    if len(recipients) != len(recipient_ids):
        raise ValidationFailed("One or more recipients do not exist")

    summary = await dispatch(
        db,
        collaborators,
        NotificationRequest(
            recipients=recipients,
            channel=request.channel,
            subject=request.subject,
            content=request.content,
            relation=request.relation,
            related_id=request.related_id,
            created_by=admin.id,
            template_name="general_announcement_update",
            slots={"message": request.content},
        ),
    )
    db.commit()
    return summary.as_dict()


@router.post("/traffic-alerts", response_model=DispatchResponse)
async def trigger_traffic_alerts(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    summary = await run_traffic_alerts(db, collaborators)
    db.commit()
    return summary.as_dict()
