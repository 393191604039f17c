from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Forbidden, NotFound, ValidationFailed
from app.models import Team, User
from app.schemas.team import TeamCreate, TeamDepartments, TeamJoin, TeamOut
from app.schemas.user import UserOut
from app.services.auth_service import get_current_user

router = APIRouter(prefix="/api/teams", tags=["teams"])


def _get_team(db: Session, team_id: str) -> Team:
    team = db.get(Team, team_id)
    if team is None:
        raise NotFound("Team not found")
    return team


@router.post("", response_model=TeamOut)
def create_team(request: TeamCreate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """The creator owns the team and becomes its admin."""
    if current_user.team_id:
        raise ValidationFailed("You already belong to a team")
    team = Team(name=request.name, owner_id=current_user.id, departments=list(request.departments))
    db.add(team)
    db.flush()
    current_user.team_id = team.id
    current_user.role = "admin"
    db.commit()
    db.refresh(team)
    return team


@router.get("/mine", response_model=TeamOut)
def my_team(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not current_user.team_id:
        raise NotFound("You are not part of a team")
    return _get_team(db, current_user.team_id)


@router.post("/join", response_model=TeamOut)
def join_team(request: TeamJoin, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    team = db.query(Team).filter(Team.join_code == request.join_code.strip().upper()).first()
    if team is None:
        raise NotFound("Invalid team join code")
    current_user.team_id = team.id
    db.commit()
    return team


@router.get("/{team_id}/members", response_model=list[UserOut])
def team_members(team_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    team = _get_team(db, team_id)
    if current_user.team_id != team.id and not current_user.is_admin:
        raise Forbidden("Not a member of this team")
    return db.query(User).filter(User.team_id == team.id).order_by(User.name).all()


@router.put("/{team_id}/departments", response_model=TeamOut)
def update_departments(
    team_id: str,
    request: TeamDepartments,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    team = _get_team(db, team_id)
    if team.owner_id != current_user.id and not (current_user.is_admin and current_user.team_id == team.id):
        raise Forbidden("Only the team owner or its admins can edit departments")
    team.departments = sorted({name.strip() for name in request.departments if name.strip()})
    db.commit()
    db.refresh(team)
    return team
