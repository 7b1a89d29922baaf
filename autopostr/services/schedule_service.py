# autopostr/services/schedule_service.py
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.infrastructure.workflow_client import WorkflowWebhookClient
from autopostr.models.schedule import Schedule, ScheduleExecution
from autopostr.schemas.schedule_schema import ExecutionCreate, ScheduleCreate, ScheduleUpdate

logger = structlog.get_logger(__name__)

INTERVAL_SECONDS = {"minutes": 60, "hours": 3600, "days": 86400}
SPACING_SECONDS = {"seconds": 1, "minutes": 60, "hours": 3600}


class ScheduleNotFoundError(LookupError):
    pass


def interval_ms(value: int, unit: str) -> int:
    return value * INTERVAL_SECONDS.get(unit, 0) * 1000


def time_between_ms(value: int, unit: str) -> int:
    return value * SPACING_SECONDS.get(unit, 0) * 1000


def next_execution(schedule: Schedule, now: Optional[datetime] = None) -> datetime:
    """Advisory only: the workflow engine decides when to actually fire."""
    now = now or datetime.utcnow()
    step = timedelta(milliseconds=interval_ms(schedule.interval_value, schedule.interval_unit))
    if schedule.last_executed_at:
        return schedule.last_executed_at + step
    return now + step


def cron_expressions(days_of_week: List[int], times: List[str]) -> List[str]:
    # days use cron numbering already (0 = Sunday)
    days = ",".join(str(d) for d in days_of_week) if days_of_week else "*"
    expressions = []
    for value in times:
        hours, minutes = value.split(":")
        expressions.append(f"{int(minutes)} {int(hours)} * * {days}")
    return expressions


class ScheduleService:
    def __init__(self, session: AsyncSession, webhook_client: Optional[WorkflowWebhookClient] = None):
        self.session = session
        self.webhook_client = webhook_client or WorkflowWebhookClient()

    # --- user CRUD ---
    async def create(self, user_id: uuid.UUID, payload: ScheduleCreate) -> Schedule:
        schedule = Schedule(user_id=user_id, **payload.model_dump())
        schedule.next_execution_at = next_execution(schedule)
        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)
        logger.info("schedule_created", user_id=str(user_id), schedule_id=str(schedule.id))
        return schedule

    async def list_for_user(self, user_id: uuid.UUID) -> List[Schedule]:
        q = select(Schedule).where(Schedule.user_id == user_id).order_by(Schedule.created_at)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def get_for_user(self, user_id: uuid.UUID, schedule_id: uuid.UUID) -> Schedule:
        schedule = await self.session.get(Schedule, schedule_id)
        if schedule is None or schedule.user_id != user_id:
            raise ScheduleNotFoundError("Schedule not found")
        return schedule

    async def update(self, user_id: uuid.UUID, schedule_id: uuid.UUID, payload: ScheduleUpdate) -> Schedule:
        schedule = await self.get_for_user(user_id, schedule_id)
        changes = payload.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(schedule, key, value)
        if "interval_value" in changes or "interval_unit" in changes:
            schedule.next_execution_at = next_execution(schedule)
        schedule.updated_at = datetime.utcnow()
        self.session.add(schedule)
        await self.session.commit()
        await self.session.refresh(schedule)
        return schedule

    async def delete(self, user_id: uuid.UUID, schedule_id: uuid.UUID) -> None:
        schedule = await self.get_for_user(user_id, schedule_id)
        await self.session.execute(delete(ScheduleExecution).where(ScheduleExecution.schedule_id == schedule.id))
        await self.session.delete(schedule)
        await self.session.commit()
        logger.info("schedule_deleted", user_id=str(user_id), schedule_id=str(schedule_id))

    # --- workflow engine ---
    async def active_feed(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        now = now or datetime.utcnow()
        res = await self.session.execute(select(Schedule).where(Schedule.is_active == True))  # noqa: E712
        schedules = list(res.scalars().all())

        feed = []
        for schedule in schedules:
            upcoming = next_execution(schedule, now)
            feed.append(
                {
                    "id": str(schedule.id),
                    "user_id": str(schedule.user_id),
                    "name": schedule.name,
                    "interval_ms": interval_ms(schedule.interval_value, schedule.interval_unit),
                    "time_between_posts_ms": time_between_ms(schedule.time_between_posts, schedule.time_between_unit),
                    "next_execution": upcoming.isoformat(),
                    "last_executed_at": schedule.last_executed_at.isoformat() if schedule.last_executed_at else None,
                    # never run: fire right away
                    "should_execute": now >= upcoming if schedule.last_executed_at else True,
                    "metadata": {
                        "interval_value": schedule.interval_value,
                        "interval_unit": schedule.interval_unit,
                        "time_between_posts": schedule.time_between_posts,
                        "time_between_unit": schedule.time_between_unit,
                    },
                }
            )
            if schedule.next_execution_at is None or schedule.next_execution_at < now:
                schedule.next_execution_at = upcoming
                self.session.add(schedule)
        await self.session.commit()
        return feed

    async def record_execution(self, schedule_id: uuid.UUID, payload: ExecutionCreate) -> Schedule:
        schedule = await self.session.get(Schedule, schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError("Schedule not found")

        executed_at = payload.executed_at or datetime.utcnow()
        if executed_at.tzinfo is not None:
            executed_at = executed_at.astimezone(timezone.utc).replace(tzinfo=None)
        schedule.last_executed_at = executed_at
        schedule.next_execution_at = next_execution(schedule)
        schedule.updated_at = datetime.utcnow()
        self.session.add(schedule)
        self.session.add(
            ScheduleExecution(
                schedule_id=schedule.id,
                user_id=schedule.user_id,
                status=payload.status,
                executed_at=executed_at,
                workflow_execution_id=payload.workflow_execution_id,
                error_message=payload.error_message,
            )
        )
        await self.session.commit()
        await self.session.refresh(schedule)
        logger.info("schedule_execution_recorded", schedule_id=str(schedule_id), status=payload.status)
        return schedule

    async def list_executions(self, user_id: uuid.UUID, schedule_id: uuid.UUID, limit: int = 50) -> List[ScheduleExecution]:
        await self.get_for_user(user_id, schedule_id)
        q = (
            select(ScheduleExecution)
            .where(ScheduleExecution.schedule_id == schedule_id)
            .order_by(ScheduleExecution.executed_at.desc())
            .limit(limit)
        )
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def sync(self, user_id: uuid.UUID, schedule_id: uuid.UUID) -> Dict[str, Any]:
        schedule = await self.get_for_user(user_id, schedule_id)
        expressions = cron_expressions(schedule.days_of_week or [], schedule.times or [])

        synced = False
        status = "sync_skipped"
        if schedule.webhook_url:
            body = {
                "scheduleId": str(schedule.id),
                "name": schedule.name,
                "cronExpressions": expressions,
                "timezone": schedule.timezone,
                "isActive": schedule.is_active,
                "daysOfWeek": schedule.days_of_week,
                "times": schedule.times,
            }
            try:
                await self.webhook_client.post(schedule.webhook_url, json=body)
                synced = True
                status = "synced"
            except httpx.HTTPError as exc:
                status = "sync_failed"
                logger.warning("schedule_webhook_failed", schedule_id=str(schedule.id), error=str(exc))

        schedule.updated_at = datetime.utcnow()
        self.session.add(schedule)
        self.session.add(
            ScheduleExecution(
                schedule_id=schedule.id,
                user_id=user_id,
                status=status,
                executed_at=datetime.utcnow(),
            )
        )
        await self.session.commit()
        logger.info("schedule_synced", schedule_id=str(schedule.id), synced=synced, expressions=len(expressions))
        return {"synced": synced, "cron_expressions": expressions}
