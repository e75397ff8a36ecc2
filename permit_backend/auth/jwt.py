from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..config import settings
from ..models.models import Profile

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    to_encode = data.copy()
    to_encode.setdefault("type", "access")
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def resolve_profile(db: Session, token: str) -> Optional[Profile]:
    """Return the active profile a bearer token belongs to, or ``None``."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    subject = payload.get("sub")
    if subject is None or payload.get("type") not in (None, "access"):
        return None
    try:
        profile = db.get(Profile, int(subject))
    except (TypeError, ValueError):
        return None
    if profile is None or not profile.is_active:
        return None
    return profile


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Profile:
    profile = resolve_profile(db, token)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return profile


def require_roles(*allowed_roles: str):
    allowed = set(allowed_roles)

    def role_checker(user: Profile = Depends(get_current_user)) -> Profile:
        if not allowed:
            return user
        if user.has_any_role(*allowed):
            return user
        raise HTTPException(status_code=403, detail="Operation not permitted for your role")

    return role_checker
