# autopostr/dependencies/auth.py
import os
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.accounts.models import User
from autopostr.accounts.repository import UserRepository
from autopostr.accounts.utils import ACCESS, TokenRegistry, decode_token
from autopostr.dependencies.db import get_session_dep

AUTOMATION_API_KEY = os.getenv("AUTOMATION_API_KEY")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session_dep),
) -> User:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No authorization header")
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    if payload.get("type") != ACCESS:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    jti = payload.get("jti")
    if jti and await TokenRegistry().access_is_revoked(jti):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token revoked")

    user = await UserRepository(session).get_by_id(payload.get("sub"))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


async def require_automation_key(x_automation_key: Optional[str] = Header(default=None)) -> None:
    """Guards the endpoints the external workflow engine calls."""
    if not AUTOMATION_API_KEY:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Automation access not configured")
    if not x_automation_key or not secrets.compare_digest(x_automation_key, AUTOMATION_API_KEY):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid automation key")
