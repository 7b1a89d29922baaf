# autopostr/services/connection_service.py
import uuid
from typing import Any, Dict

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from autopostr.infrastructure.connections_repo import ConnectionsRepository
from autopostr.infrastructure.crypto import decrypt_token

logger = structlog.get_logger(__name__)

SUPPORTED_PLATFORMS = ("facebook",)


class TargetNotFoundError(LookupError):
    pass


class ConnectionService:
    """Read and targeted-update access to a user's connections, pages and linked accounts."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.repo = ConnectionsRepository(session)

    async def list_state(self, user_id: uuid.UUID) -> Dict[str, Any]:
        connections = await self.repo.list_active_connections(user_id)
        pages = await self.repo.list_pages(user_id)
        accounts = await self.repo.list_accounts(user_id)
        return {"connections": connections, "pages": pages, "ig_accounts": accounts}

    async def set_default_page(self, user_id: uuid.UUID, page_id: str):
        page = await self.repo.set_default_page(user_id, page_id)
        if page is None:
            raise TargetNotFoundError("Page not found")
        logger.info("default_page_set", user_id=str(user_id), page_id=page_id)
        return page

    async def set_default_account(self, user_id: uuid.UUID, ig_user_id: str):
        account = await self.repo.set_default_account(user_id, ig_user_id)
        if account is None:
            raise TargetNotFoundError("Instagram account not found")
        logger.info("default_account_set", user_id=str(user_id), ig_user_id=ig_user_id)
        return account

    async def deactivate_platform(self, user_id: uuid.UUID, platform: str) -> int:
        if platform not in SUPPORTED_PLATFORMS:
            raise ValueError(f"Unsupported platform: {platform}")
        count = await self.repo.deactivate_platform(user_id, platform)
        logger.info("platform_deactivated", user_id=str(user_id), platform=platform, connections=count)
        return count

    async def resolve_page_token(self, user_id: uuid.UUID, page_id: str) -> str:
        page = await self.repo.get_page(user_id, page_id)
        if page is None:
            raise TargetNotFoundError("Page not found or access denied")
        token = decrypt_token(page.page_access_token_enc)
        if not token:
            raise TargetNotFoundError("Page access token not available")
        return token

    async def resolve_account_token(self, user_id: uuid.UUID, ig_user_id: str) -> str:
        # linked accounts post with the owning page's token
        account = await self.repo.get_account(user_id, ig_user_id)
        if account is None:
            raise TargetNotFoundError("Instagram account not found or access denied")
        return await self.resolve_page_token(user_id, account.page_id)
