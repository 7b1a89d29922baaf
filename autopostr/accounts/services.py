# autopostr/accounts/services.py
from dataclasses import dataclass
from typing import Optional

import structlog
from jose import JWTError
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.infrastructure.redis_cache import get_redis
from .models import User
from .repository import UserRepository
from .schemas import UserCreate
from .utils import (
    ACCESS,
    REFRESH,
    IssuedToken,
    TokenRegistry,
    access_token_for,
    assert_password_policy,
    decode_token,
    hash_password,
    refresh_token_for,
    verify_password,
)

logger = structlog.get_logger(__name__)

MAX_LOGIN_ATTEMPTS = 5
LOGIN_ATTEMPT_WINDOW_SECONDS = 300
LOCKOUT_SECONDS = 300


class AuthenticationError(Exception):
    pass


class LoginThrottle:
    """Counts failed logins per user inside a window and locks the account when the limit is reached."""

    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS, window: int = LOGIN_ATTEMPT_WINDOW_SECONDS, lockout: int = LOCKOUT_SECONDS):
        self.max_attempts = max_attempts
        self.window = window
        self.lockout = lockout

    async def is_locked(self, user_id: str) -> bool:
        return await get_redis().exists(f"login:lock:{user_id}") == 1

    async def record_failure(self, user_id: str) -> int:
        redis = get_redis()
        attempts = await redis.incr(f"login:failures:{user_id}")
        if attempts == 1:
            await redis.expire(f"login:failures:{user_id}", self.window)
        if attempts >= self.max_attempts:
            await redis.set(f"login:lock:{user_id}", "1", ex=self.lockout)
            logger.warning("login_locked", user_id=user_id, attempts=attempts)
        return attempts

    async def reset(self, user_id: str) -> None:
        await get_redis().delete(f"login:failures:{user_id}", f"login:lock:{user_id}")


@dataclass
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken


class UserService:
    """Registration, password login and the access/refresh token lifecycle."""

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        throttle: Optional[LoginThrottle] = None,
        registry: Optional[TokenRegistry] = None,
    ):
        self.repo = UserRepository(session) if session is not None else None
        self.throttle = throttle or LoginThrottle()
        self.registry = registry or TokenRegistry()

    async def register_user(self, user_in: UserCreate) -> User:
        assert_password_policy(user_in.password)
        taken = await self.repo.find_conflict(user_in.email, user_in.username)
        if taken == "email":
            raise ValueError("email already registered")
        if taken == "username":
            raise ValueError("username already taken")

        user = await self.repo.create(
            User(email=user_in.email, username=user_in.username, hashed_password=hash_password(user_in.password))
        )
        logger.info("user_registered", user_id=str(user.id))
        return user

    async def authenticate_user(self, email: str, password: str) -> User:
        user = await self.repo.get_by_email(email)
        if user is None or not user.is_active:
            raise AuthenticationError("invalid credentials")

        user_id = str(user.id)
        if await self.throttle.is_locked(user_id):
            logger.warning("login_on_locked_account", user_id=user_id)
            raise AuthenticationError("account temporarily locked due to failed login attempts")
        if not verify_password(password, user.hashed_password):
            attempts = await self.throttle.record_failure(user_id)
            logger.info("login_wrong_password", user_id=user_id, attempts=attempts)
            raise AuthenticationError("invalid credentials")

        await self.throttle.reset(user_id)
        await self.repo.update_last_login(user)
        logger.info("login_ok", user_id=user_id)
        return user

    async def issue_tokens(self, user: User) -> TokenPair:
        return await self._pair_for(str(user.id))

    async def rotate_refresh(self, refresh_token: str) -> TokenPair:
        """Single use: the presented refresh token is revoked before a new pair is minted."""
        claims = _claims_or_none(refresh_token)
        if not claims or claims.get("type") != REFRESH:
            raise AuthenticationError("invalid refresh token")
        jti = claims.get("jti")
        if not await self.registry.refresh_is_live(jti):
            logger.warning("refresh_not_live", jti=jti)
            raise AuthenticationError("refresh token revoked or invalid")

        await self.registry.forget_refresh(jti)
        return await self._pair_for(claims["sub"])

    async def logout(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None, revoke_all: bool = False) -> None:
        refresh_claims = _claims_or_none(refresh_token) if refresh_token else None
        if refresh_claims and refresh_claims.get("type") == REFRESH:
            await self.registry.forget_refresh(refresh_claims.get("jti"))
            if revoke_all and refresh_claims.get("sub"):
                await self.registry.forget_all_refresh(refresh_claims["sub"])

        access_claims = _claims_or_none(access_token) if access_token else None
        if access_claims and access_claims.get("type") == ACCESS and access_claims.get("jti"):
            await self.registry.revoke_access(access_claims["jti"], access_claims.get("exp", 0))

    async def _pair_for(self, subject: str) -> TokenPair:
        pair = TokenPair(access=access_token_for(subject), refresh=refresh_token_for(subject))
        await self.registry.remember_refresh(pair.refresh, subject)
        logger.info("tokens_issued", user_id=subject, refresh_jti=pair.refresh.jti)
        return pair


def _claims_or_none(token: str) -> Optional[dict]:
    try:
        return decode_token(token)
    except JWTError:
        return None
