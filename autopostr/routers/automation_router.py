# autopostr/routers/automation_router.py
"""Endpoints polled and called back by the external workflow engine."""
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from autopostr.dependencies.auth import require_automation_key
from autopostr.dependencies.db import get_session_dep
from autopostr.schemas.asset_schema import AssetRead
from autopostr.schemas.post_schema import PostRead, PostResultUpdate
from autopostr.schemas.schedule_schema import ExecutionCreate
from autopostr.services.asset_service import AssetNotFoundError, AssetService
from autopostr.services.post_service import InvalidTransitionError, PostNotFoundError, PostService
from autopostr.services.schedule_service import ScheduleNotFoundError, ScheduleService

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/automation", tags=["automation"], dependencies=[Depends(require_automation_key)])


@router.get("/schedules")
async def schedule_feed(session: AsyncSession = Depends(get_session_dep)):
    feed = await ScheduleService(session).active_feed()
    return {"success": True, "count": len(feed), "schedules": feed}


@router.post("/schedules/{schedule_id}/executions")
async def record_execution(schedule_id: uuid.UUID, payload: ExecutionCreate, session: AsyncSession = Depends(get_session_dep)):
    try:
        schedule = await ScheduleService(session).record_execution(schedule_id, payload)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {
        "ok": True,
        "last_executed_at": schedule.last_executed_at.isoformat(),
        "next_execution_at": schedule.next_execution_at.isoformat() if schedule.next_execution_at else None,
    }


@router.post("/posts/{post_id}/result")
async def record_post_result(post_id: uuid.UUID, payload: PostResultUpdate, session: AsyncSession = Depends(get_session_dep)):
    try:
        post = await PostService(session).record_result(post_id, payload.status, result=payload.result, error=payload.error)
    except PostNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return {"ok": True, "post": PostRead.model_validate(post, from_attributes=True).model_dump(mode="json")}


@router.get("/users/{user_id}/random-asset")
async def random_asset(user_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep)):
    try:
        asset = await AssetService(session).random_rotation_asset(user_id)
    except AssetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    logger.info("rotation_asset_picked", user_id=str(user_id), asset_id=str(asset.id))
    return {"ok": True, "asset": AssetRead.model_validate(asset, from_attributes=True).model_dump(mode="json")}
