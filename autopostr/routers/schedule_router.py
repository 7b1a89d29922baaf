# autopostr/routers/schedule_router.py
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.dependencies.auth import get_current_user
from autopostr.dependencies.clients import get_workflow_client
from autopostr.dependencies.db import get_session_dep
from autopostr.infrastructure.workflow_client import WorkflowWebhookClient
from autopostr.schemas.schedule_schema import ScheduleCreate, ScheduleRead, ScheduleUpdate
from autopostr.services.schedule_service import ScheduleNotFoundError, ScheduleService

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.post("", response_model=ScheduleRead, status_code=status.HTTP_201_CREATED)
async def create_schedule(payload: ScheduleCreate, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    return await ScheduleService(session).create(current_user.id, payload)


@router.get("", response_model=List[ScheduleRead])
async def list_schedules(session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    return await ScheduleService(session).list_for_user(current_user.id)


@router.get("/{schedule_id}", response_model=ScheduleRead)
async def get_schedule(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        return await ScheduleService(session).get_for_user(current_user.id, schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.patch("/{schedule_id}", response_model=ScheduleRead)
async def update_schedule(
    schedule_id: uuid.UUID,
    payload: ScheduleUpdate,
    session: AsyncSession = Depends(get_session_dep),
    current_user=Depends(get_current_user),
):
    try:
        return await ScheduleService(session).update(current_user.id, schedule_id, payload)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        await ScheduleService(session).delete(current_user.id, schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"ok": True}


@router.get("/{schedule_id}/executions")
async def list_executions(schedule_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        executions = await ScheduleService(session).list_executions(current_user.id, schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"ok": True, "executions": [e.model_dump(mode="json") for e in executions]}


@router.post("/{schedule_id}/sync")
async def sync_schedule(
    schedule_id: uuid.UUID,
    session: AsyncSession = Depends(get_session_dep),
    webhook_client: WorkflowWebhookClient = Depends(get_workflow_client),
    current_user=Depends(get_current_user),
):
    try:
        result = await ScheduleService(session, webhook_client=webhook_client).sync(current_user.id, schedule_id)
    except ScheduleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"ok": True, **result}
