# autopostr/services/connect_attempts.py
import json
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

import structlog
from redis.exceptions import WatchError

from autopostr.infrastructure.redis_cache import get_redis

logger = structlog.get_logger(__name__)

# upper bound for the consent round-trip; an unfinished attempt expires back to idle
ATTEMPT_TTL_SECONDS = 300
COMPLETED_TTL_SECONDS = 3600

IDLE = "idle"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"

_STATE_ALPHABET = string.ascii_lowercase + string.digits


class InvalidStateError(ValueError):
    pass


class AttemptInProgressError(Exception):
    pass


@dataclass
class ConnectAttempt:
    status: str
    attempt_id: Optional[str] = None
    started_at: Optional[int] = None


def _decode(raw: Optional[str]) -> ConnectAttempt:
    if not raw:
        return ConnectAttempt(status=IDLE)
    try:
        data = json.loads(raw)
    except ValueError:
        return ConnectAttempt(status=IDLE)
    return ConnectAttempt(status=data.get("status", IDLE), attempt_id=data.get("attempt_id"), started_at=data.get("started_at"))


def mint_state(user_id: str) -> str:
    """`{user_id}-{unix_ms}-{random}`; opaque to the platform, round-tripped through the redirect."""
    suffix = "".join(secrets.choice(_STATE_ALPHABET) for _ in range(9))
    return f"{user_id}-{int(time.time() * 1000)}-{suffix}"


def state_user_id(state: str) -> str:
    # user ids are uuids and contain dashes, so split from the right
    parts = (state or "").rsplit("-", 2)
    if len(parts) != 3 or not parts[0] or not parts[1].isdigit():
        raise InvalidStateError("Invalid state parameter")
    return parts[0]


def validate_state(state: str, user_id: str) -> None:
    if state_user_id(state) != str(user_id):
        raise InvalidStateError("Invalid state parameter")


class ConnectAttemptTracker:
    """
    Per-user connect attempt: Idle, InProgress(attempt_id) or Completed(attempt_id).

    Kept in Redis so every tab and worker sees the same attempt. A new
    attempt is refused while one is in progress; completion only applies
    when the attempt id matches, so a late callback from an older attempt
    cannot finish a newer one.
    """

    def __init__(self, platform: str = "facebook"):
        self.platform = platform

    def _key(self, user_id: str) -> str:
        return f"connect_attempt:{self.platform}:{user_id}"

    async def current(self, user_id: str) -> ConnectAttempt:
        return _decode(await get_redis().get(self._key(user_id)))

    async def begin(self, user_id: str, attempt_id: str) -> ConnectAttempt:
        attempt = ConnectAttempt(status=IN_PROGRESS, attempt_id=attempt_id, started_at=int(time.time()))
        key = self._key(user_id)
        # compare-and-set: a completed or expired attempt may be replaced, an in-progress one may not
        async with get_redis().pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                existing = _decode(await pipe.get(key))
                if existing.status == IN_PROGRESS:
                    logger.info("connect_attempt_rejected", user_id=user_id, platform=self.platform)
                    raise AttemptInProgressError("A connection attempt is already in progress")
                pipe.multi()
                pipe.set(key, json.dumps(attempt.__dict__), ex=ATTEMPT_TTL_SECONDS)
                await pipe.execute()
            except WatchError:
                logger.info("connect_attempt_race_lost", user_id=user_id, platform=self.platform)
                raise AttemptInProgressError("A connection attempt is already in progress")
        logger.info("connect_attempt_started", user_id=user_id, platform=self.platform)
        return attempt

    async def complete(self, user_id: str, attempt_id: str) -> bool:
        existing = await self.current(user_id)
        if existing.status != IN_PROGRESS or existing.attempt_id != attempt_id:
            logger.info("connect_attempt_stale", user_id=user_id, platform=self.platform, status=existing.status)
            return False
        done = ConnectAttempt(status=COMPLETED, attempt_id=attempt_id, started_at=existing.started_at)
        await get_redis().set(self._key(user_id), json.dumps(done.__dict__), ex=COMPLETED_TTL_SECONDS)
        logger.info("connect_attempt_completed", user_id=user_id, platform=self.platform)
        return True

    async def abandon(self, user_id: str, attempt_id: str) -> None:
        """Drop the attempt after a failed callback so the user can start over."""
        existing = await self.current(user_id)
        if existing.status == IN_PROGRESS and existing.attempt_id == attempt_id:
            await get_redis().delete(self._key(user_id))
            logger.info("connect_attempt_failed", user_id=user_id, platform=self.platform)

    async def cancel(self, user_id: str) -> None:
        await get_redis().delete(self._key(user_id))
        logger.info("connect_attempt_cancelled", user_id=user_id, platform=self.platform)
