"""Session auth for trip staff and drivers.

Tokens come from the ``access_token`` cookie (browser) or a Bearer header
(mobile app). Routes work with an ``Identity``: who is acting, at which role,
and which driver record (if any) the login belongs to.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from tripdetails.config import SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRE_MINUTES
from tripdetails.database import get_db
from tripdetails.models import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ROLE_HIERARCHY = {"admin": 3, "supervisor": 2, "driver": 1}


@dataclass(frozen=True)
class Identity:
    user_id: int | None
    username: str
    role: str
    driver_id: int | None = None

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, username=user.username, role=user.role, driver_id=user.driver_id)

    @property
    def is_driver(self) -> bool:
        return self.driver_id is not None

    def at_least(self, min_role: str) -> bool:
        return ROLE_HIERARCHY.get(self.role, 0) >= ROLE_HIERARCHY.get(min_role, 0)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=JWT_EXPIRE_MINUTES))
    claims = {"sub": user.username, "role": user.role, "exp": expire}
    if user.driver_id is not None:
        claims["driver_id"] = user.driver_id
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def _extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get("access_token")
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: the active user behind the request token, or 401."""
    token = _extract_token(request)
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        username = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM]).get("sub")
    except JWTError:
        raise _unauthorized("Invalid or expired token")
    if username is None:
        raise _unauthorized("Invalid token")

    user = db.query(User).filter(User.username == username).first()
    if user is None or not user.active:
        raise _unauthorized("User not found or inactive")
    return user


def get_current_identity(user: User = Depends(get_current_user)) -> Identity:
    # Read from the user row, not the token, so a relinked driver takes effect at once
    return Identity.from_user(user)


def require_role(min_role: str):
    """Dependency factory: require at least `min_role`."""

    def _checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not identity.at_least(min_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires '{min_role}' role or higher. Your role: '{identity.role}'",
            )
        return identity

    return _checker


def require_driver(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Dependency: the login must be linked to a driver record."""
    if not identity.is_driver:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only users linked to a driver can set their vehicle",
        )
    return identity
