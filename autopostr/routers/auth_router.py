# autopostr/routers/auth_router.py
import os
import time
from typing import Optional

import structlog
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.accounts.schemas import LoginRequest, Token, UserCreate
from autopostr.accounts.services import AuthenticationError, TokenPair, UserService
from autopostr.dependencies.auth import oauth2_scheme
from autopostr.dependencies.db import get_session_dep

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE = "refresh_token"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


def _token_response(response: Response, pair: TokenPair) -> Token:
    """Access token goes in the body; the refresh token only ever travels as an HttpOnly cookie."""
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=pair.refresh.token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=max(0, pair.refresh.exp - int(time.time())),
    )
    return Token(access_token=pair.access.token, expires_in=pair.access.exp)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate, session: AsyncSession = Depends(get_session_dep)):
    try:
        user = await UserService(session).register_user(user_in)
    except ValueError as e:
        logger.info("register_rejected", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"ok": True, "id": str(user.id), "email": user.email, "username": user.username}


@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest, response: Response, session: AsyncSession = Depends(get_session_dep)):
    svc = UserService(session)
    try:
        user = await svc.authenticate_user(credentials.email, credentials.password)
    except AuthenticationError as e:
        logger.warning("login_failed", reason=str(e))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _token_response(response, await svc.issue_tokens(user))


@router.post("/refresh", response_model=Token)
async def refresh(response: Response, refresh_token: Optional[str] = Cookie(None)):
    if not refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing refresh token")
    try:
        pair = await UserService().rotate_refresh(refresh_token)
    except AuthenticationError as e:
        logger.warning("refresh_failed", reason=str(e))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    return _token_response(response, pair)


@router.post("/logout")
async def logout(
    response: Response,
    access_token: Optional[str] = Depends(oauth2_scheme),
    refresh_token: Optional[str] = Cookie(None),
    revoke_all: bool = False,
):
    # revoke_all also drops every other refresh token the user holds
    await UserService().logout(access_token=access_token, refresh_token=refresh_token, revoke_all=revoke_all)
    response.delete_cookie(REFRESH_COOKIE)
    return {"ok": True}
