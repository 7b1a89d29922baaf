# autopostr/routers/asset_router.py
import uuid
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.dependencies.auth import get_current_user
from autopostr.dependencies.db import get_session_dep
from autopostr.schemas.asset_schema import AssetCreate, AssetRead, AssetSearch
from autopostr.services.asset_filters import FilterError
from autopostr.services.asset_service import AssetNotFoundError, AssetService

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post("", response_model=AssetRead, status_code=status.HTTP_201_CREATED)
async def register_asset(payload: AssetCreate, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    return await AssetService(session).create(current_user.id, payload)


@router.get("", response_model=List[AssetRead])
async def list_assets(session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    return await AssetService(session).list_for_user(current_user.id)


@router.post("/search", response_model=List[AssetRead])
async def search_assets(payload: AssetSearch, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        return await AssetService(session).search(current_user.id, payload)
    except FilterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.put("/{asset_id}/rotation", response_model=AssetRead)
async def set_rotation(
    asset_id: uuid.UUID,
    enabled: bool = Body(..., embed=True),
    session: AsyncSession = Depends(get_session_dep),
    current_user=Depends(get_current_user),
):
    try:
        return await AssetService(session).set_rotation(current_user.id, asset_id, enabled)
    except AssetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.delete("/{asset_id}")
async def delete_asset(asset_id: uuid.UUID, session: AsyncSession = Depends(get_session_dep), current_user=Depends(get_current_user)):
    try:
        await AssetService(session).delete(current_user.id, asset_id)
    except AssetNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return {"ok": True}
