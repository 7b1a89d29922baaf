# autopostr/accounts/utils.py
"""Password hashing, JWT minting and the Redis registry of live and revoked token ids."""
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext

from autopostr.infrastructure.redis_cache import get_redis

logger = structlog.get_logger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "change_me_now")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "30"))

ACCESS = "access"
REFRESH = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

PASSWORD_RULES = (
    (lambda p: len(p) >= 8, "password must be at least 8 characters"),
    (lambda p: any(c.isdigit() for c in p), "password must include a digit"),
    (lambda p: any(c.islower() for c in p), "password must include a lowercase letter"),
    (lambda p: any(c.isupper() for c in p), "password must include an uppercase letter"),
)


def assert_password_policy(password: str) -> None:
    for check, message in PASSWORD_RULES:
        if not check(password):
            raise ValueError(message)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError as e:
        logger.warning("password_verify_failed", error=str(e))
        return False


def _now_ts() -> int:
    return int(datetime.now(timezone.utc).timestamp())


@dataclass
class IssuedToken:
    token: str
    jti: str
    exp: int


def mint_token(subject: str, token_type: str, lifetime: timedelta) -> IssuedToken:
    jti = uuid.uuid4().hex
    exp = int((datetime.now(timezone.utc) + lifetime).timestamp())
    claims = {"sub": subject, "type": token_type, "jti": jti, "iat": _now_ts(), "exp": exp}
    return IssuedToken(token=jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM), jti=jti, exp=exp)


def access_token_for(subject: str) -> IssuedToken:
    return mint_token(subject, ACCESS, timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def refresh_token_for(subject: str) -> IssuedToken:
    return mint_token(subject, REFRESH, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise


class TokenRegistry:
    """
    Refresh tokens are valid only while `refresh:{jti}` exists; each user's
    live ids are indexed under `refresh:user:{user_id}` for logout-everywhere.
    Revoked access tokens sit under `revoked:{jti}` until they expire anyway.
    """

    async def remember_refresh(self, token: IssuedToken, user_id: str) -> None:
        ttl = token.exp - _now_ts()
        if ttl <= 0:
            raise ValueError("refresh token already expired")
        redis = get_redis()
        await redis.set(f"refresh:{token.jti}", user_id, ex=ttl)
        await redis.sadd(f"refresh:user:{user_id}", token.jti)
        await redis.expire(f"refresh:user:{user_id}", ttl)

    async def refresh_is_live(self, jti: str) -> bool:
        if not jti:
            return False
        return await get_redis().exists(f"refresh:{jti}") == 1

    async def forget_refresh(self, jti: str) -> None:
        redis = get_redis()
        user_id = await redis.get(f"refresh:{jti}")
        await redis.delete(f"refresh:{jti}")
        if user_id:
            await redis.srem(f"refresh:user:{user_id}", jti)
        logger.info("refresh_revoked", jti=jti, user_id=user_id)

    async def forget_all_refresh(self, user_id: str) -> int:
        redis = get_redis()
        index = f"refresh:user:{user_id}"
        jtis = await redis.smembers(index) or set()
        for jti in jtis:
            await redis.delete(f"refresh:{jti}")
        await redis.delete(index)
        logger.info("refresh_revoked_everywhere", user_id=user_id, count=len(jtis))
        return len(jtis)

    async def revoke_access(self, jti: str, exp: int) -> None:
        ttl = exp - _now_ts()
        if ttl > 0:
            await get_redis().set(f"revoked:{jti}", "1", ex=ttl)

    async def access_is_revoked(self, jti: str) -> bool:
        return await get_redis().exists(f"revoked:{jti}") == 1
