from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.errors import AuthRequired, Forbidden
from app.models import User

JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def create_token(user: User, ttl_seconds: Optional[int] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "user": {"id": user.id, "role": user.role},
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds or settings.jwt_expires_seconds)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as exc:
        raise AuthRequired("Token is not valid") from exc
    claims = payload.get("user")
    if not isinstance(claims, dict) or not claims.get("id"):
        raise AuthRequired("Token is not valid")
    return claims


def get_current_user(
    x_auth_token: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    if not x_auth_token:
        raise AuthRequired("No token, authorization denied")
    claims = decode_token(x_auth_token)
    user = db.get(User, claims["id"])
    if user is None:
        raise AuthRequired("Token is not valid")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise Forbidden("Access denied. Admin privileges required.")
    return current_user


def ensure_self_or_admin(current_user: User, user_id: str) -> None:
    if current_user.id != user_id and not current_user.is_admin:
        raise Forbidden("Not authorized")
