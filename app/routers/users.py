from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Forbidden, NotFound, ValidationFailed
from app.models import Location, Team, User
from app.schemas.auth import RegisterRequest, TokenResponse
from app.schemas.user import (
    DefaultLocationUpdate,
    NotificationPreferences,
    PasswordChange,
    ProfileUpdate,
    UserCreate,
    UserOut,
    UserUpdate,
)
from app.services.auth_service import (
    create_token,
    ensure_self_or_admin,
    get_current_user,
    hash_password,
    require_admin,
    verify_password,
)
from app.services.collaborators import Collaborators, get_collaborators
from app.services.notification_service import NotificationRequest, dispatch

router = APIRouter(prefix="/api/users", tags=["users"])


def _ensure_unique_email(db: Session, email: str) -> None:
    if db.query(User).filter(User.email == email).first():
        raise ValidationFailed("User already exists")


async def _send_welcome(db: Session, collaborators: Collaborators, user: User, created_by: str) -> None:
    content = (
        f"Welcome to the Employee Scheduling System, {user.name}! "
        "You will receive schedule updates and announcements here."
    )
    await dispatch(
        db,
        collaborators,
        NotificationRequest(
            recipients=[user],
            channel="both",
            subject="Welcome to the Employee Scheduling System",
            content=content,
            relation="other",
            created_by=created_by,
            template_name="welcome_message",
        ),
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Public self-registration; always creates an employee."""
    email = request.email.lower()
    _ensure_unique_email(db, email)

    team = None
    if request.team_join_code:
        team = db.query(Team).filter(Team.join_code == request.team_join_code.strip().upper()).first()
        if team is None:
            raise NotFound("Invalid team join code")

    user = User(
        name=request.name,
        email=email,
        password_hash=hash_password(request.password),
        phone=request.phone,
        role="employee",
        position=request.position,
        department=request.department,
        team_id=team.id if team else None,
        preferred_language=request.preferred_language,
    )
    db.add(user)
    db.flush()
    await _send_welcome(db, collaborators, user, created_by=user.id)
    db.commit()
    return TokenResponse(token=create_token(user))


@router.post("", response_model=UserOut)
async def create_user(
    request: UserCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    email = request.email.lower()
    _ensure_unique_email(db, email)
    _check_default_location(db, request.default_location_id)
    user = User(
        name=request.name,
        email=email,
        password_hash=hash_password(request.password),
        phone=request.phone,
        role=request.role,
        position=request.position,
        department=request.department,
        team_id=request.team_id or admin.team_id,
        default_location_id=request.default_location_id,
        preferred_language=request.preferred_language,
    )
    db.add(user)
    db.flush()
    await _send_welcome(db, collaborators, user, created_by=admin.id)
    db.commit()
    db.refresh(user)
    return user


@router.get("", response_model=list[UserOut])
def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(User).order_by(User.name).all()


def _get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _check_default_location(db: Session, location_id: Optional[str]) -> None:
    if location_id is None:
        return
    location = db.get(Location, location_id)
    if location is None or not location.is_active:
        raise ValidationFailed("Location not found or inactive")


@router.put("/profile", response_model=UserOut)
def update_profile(
    request: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Self-service profile edit; role and team stay with the admins."""
    changes = request.model_dump(exclude_unset=True)
    if "email" in changes:
        email = changes["email"].lower()
        if email != current_user.email:
            _ensure_unique_email(db, email)
        changes["email"] = email
    for key, value in changes.items():
        setattr(current_user, key, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.put("/password")
def change_password(
    request: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(request.current_password, current_user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    current_user.password_hash = hash_password(request.new_password)
    db.commit()
    return {"msg": "Password updated successfully"}


@router.put("/default-location", response_model=UserOut)
def set_default_location(
    request: DefaultLocationUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not request.location_id:
        raise ValidationFailed("Location ID is required")
    _check_default_location(db, request.location_id)
    current_user.default_location_id = request.location_id
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_self_or_admin(current_user, user_id)
    return _get_user(db, user_id)


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    request: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(current_user, user_id)
    user = _get_user(db, user_id)
    changes = request.model_dump(exclude_unset=True)
    if "role" in changes and not current_user.is_admin:
        raise Forbidden("Only admins can change roles")
    if "default_location_id" in changes:
        _check_default_location(db, changes["default_location_id"])
    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


@router.put("/{user_id}/notification-preferences", response_model=UserOut)
def update_notification_preferences(
    user_id: str,
    request: NotificationPreferences,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(current_user, user_id)
    user = _get_user(db, user_id)
    user.notification_preferences = request.model_dump()
    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}")
def delete_user(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise ValidationFailed("You cannot delete your own account")
    db.delete(user)
    db.commit()
    return {"msg": "User removed"}
