"""Login and identity routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .auth import Caller, authenticate_user, get_current_caller, token_for
from .deps import get_sessionmaker
from .schemas import LoginIn
from .utils.responses import ok

router = APIRouter(prefix="/api/auth")
logger = logging.getLogger("api")


@router.post("/login")
async def login(
    payload: LoginIn,
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> dict:
    """Exchange username and password for a bearer token."""

    async with sessionmaker() as session:
        user = await authenticate_user(session, payload.username, payload.password)
    if user is None:
        logger.info("login failed for %s", payload.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    token = token_for(user)
    return ok(
        {
            **token.model_dump(),
            "user": {
                "id": user.id,
                "username": user.username,
                "role": user.role,
                "first_name": user.first_name,
                "last_name": user.last_name,
            },
        },
        message="Login successful",
    )


@router.get("/me")
async def me(caller: Caller = Depends(get_current_caller)) -> dict:
    return ok({**caller.model_dump(), "is_manager": caller.is_manager})
