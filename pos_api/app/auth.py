# auth.py

"""Password login, JWT access tokens and caller resolution for routes."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings

from .domain import Forbidden
from .models import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MANAGER_ROLE = "Manager"

ph = PasswordHasher()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class Token(BaseModel):
    """JWT access token returned after authentication."""

    access_token: str
    token_type: str = "bearer"
    role: str | None = None


class Caller(BaseModel):
    """Identity of the user performing an operation."""

    user_id: Optional[int] = None
    username: str
    role: str = "User"

    @property
    def is_manager(self) -> bool:
        """The single privilege bit used by the order policy."""
        return self.role == MANAGER_ROLE


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored hash."""

    try:
        return ph.verify(hashed_password, plain_password)
    except (VerifyMismatchError, InvalidHashError):
        return False
    except VerificationError as exc:  # pragma: no cover - unexpected
        logger.error("argon2 verification error: %s", exc)
        raise


async def authenticate_user(
    session: AsyncSession, username: str, password: str
) -> Optional[User]:
    """Return the active user if credentials match, else ``None``."""

    user = await session.scalar(select(User).where(User.username == username))
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT containing the provided claims."""

    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def token_for(user: User) -> Token:
    """Issue an access token carrying ``user``'s identity and role."""

    access = create_access_token({"sub": user.username, "uid": user.id, "role": user.role})
    return Token(access_token=access, role=user.role)


def get_current_caller(token: str = Depends(oauth2_scheme)) -> Caller:
    """Resolve the caller from a bearer token or raise ``HTTPException``."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        raise credentials_exception
    username = payload.get("sub")
    role = payload.get("role")
    if username is None or role is None:
        raise credentials_exception
    return Caller(user_id=payload.get("uid"), username=username, role=role)


def manager_required(caller: Caller = Depends(get_current_caller)) -> Caller:
    """Dependency restricting a route to managers."""

    if not caller.is_manager:
        raise Forbidden("Manager role required", details={"role": caller.role})
    return caller
