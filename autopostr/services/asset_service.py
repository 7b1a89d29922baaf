# autopostr/services/asset_service.py
import random
import uuid
from datetime import datetime
from typing import List

import structlog
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.models.asset import Asset
from autopostr.schemas.asset_schema import AssetCreate, AssetSearch
from autopostr.services.asset_filters import Condition, apply_filter

logger = structlog.get_logger(__name__)


class AssetNotFoundError(LookupError):
    pass


class AssetService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user_id: uuid.UUID, payload: AssetCreate) -> Asset:
        asset = Asset(user_id=user_id, **payload.model_dump())
        self.session.add(asset)
        await self.session.commit()
        await self.session.refresh(asset)
        logger.info("asset_registered", user_id=str(user_id), asset_id=str(asset.id), type=asset.type)
        return asset

    async def list_for_user(self, user_id: uuid.UUID) -> List[Asset]:
        q = select(Asset).where(Asset.user_id == user_id).order_by(Asset.created_at.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def search(self, user_id: uuid.UUID, search: AssetSearch) -> List[Asset]:
        conditions = [Condition(field=c.field, op=c.op, value=c.value) for c in search.conditions]
        return apply_filter(await self.list_for_user(user_id), conditions, search.match)

    async def get_for_user(self, user_id: uuid.UUID, asset_id: uuid.UUID) -> Asset:
        asset = await self.session.get(Asset, asset_id)
        if asset is None or asset.user_id != user_id:
            raise AssetNotFoundError("Asset not found")
        return asset

    async def set_rotation(self, user_id: uuid.UUID, asset_id: uuid.UUID, enabled: bool) -> Asset:
        asset = await self.get_for_user(user_id, asset_id)
        asset.rotation_enabled = enabled
        asset.updated_at = datetime.utcnow()
        self.session.add(asset)
        await self.session.commit()
        await self.session.refresh(asset)
        return asset

    async def delete(self, user_id: uuid.UUID, asset_id: uuid.UUID) -> None:
        asset = await self.get_for_user(user_id, asset_id)
        await self.session.delete(asset)
        await self.session.commit()
        logger.info("asset_deleted", user_id=str(user_id), asset_id=str(asset_id))

    async def random_rotation_asset(self, user_id: uuid.UUID) -> Asset:
        q = select(Asset).where(Asset.user_id == user_id, Asset.rotation_enabled == True)  # noqa: E712
        res = await self.session.execute(q)
        candidates = list(res.scalars().all())
        if not candidates:
            raise AssetNotFoundError("No media assets found")
        return random.choice(candidates)
