# autopostr/infrastructure/connections_repo.py
from typing import List, Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from sqlalchemy import delete, update
from autopostr.models.connection import Connection, FacebookPage, LinkedAccount
import uuid
from datetime import datetime


class ConnectionsRepository:
    """
    Repository for Connection, FacebookPage and LinkedAccount rows.
    Every query is scoped by user_id. Methods named `stage_*` only add to the
    session; the caller owns the commit so several writes share a transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # --- connections ---
    async def get_connection(self, user_id: uuid.UUID, platform: str, platform_user_id: str) -> Optional[Connection]:
        q = select(Connection).where(
            Connection.user_id == user_id,
            Connection.platform == platform,
            Connection.platform_user_id == platform_user_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def latest_active_connection(self, user_id: uuid.UUID, platform: str) -> Optional[Connection]:
        q = (
            select(Connection)
            .where(Connection.user_id == user_id, Connection.platform == platform, Connection.is_active == True)  # noqa: E712
            .order_by(Connection.updated_at.desc())
            .limit(1)
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def upsert_connection(
        self,
        user_id: uuid.UUID,
        platform: str,
        platform_user_id: str,
        platform_username: Optional[str],
        access_token_enc: str,
        token_expires_at: Optional[datetime],
    ) -> Connection:
        """Create or refresh the (user, platform, external account) connection and reactivate it."""
        cp = await self.get_connection(user_id, platform, platform_user_id)
        if cp is None:
            cp = Connection(user_id=user_id, platform=platform, platform_user_id=platform_user_id)
        cp.platform_username = platform_username
        cp.access_token_enc = access_token_enc
        cp.token_expires_at = token_expires_at
        cp.is_active = True
        cp.updated_at = datetime.utcnow()
        self.session.add(cp)
        await self.session.commit()
        await self.session.refresh(cp)
        return cp

    async def list_active_connections(self, user_id: uuid.UUID) -> List[Connection]:
        q = select(Connection).where(Connection.user_id == user_id, Connection.is_active == True)  # noqa: E712
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def deactivate_platform(self, user_id: uuid.UUID, platform: str) -> int:
        """Soft delete: connection rows stay, pages and linked accounts of the platform go."""
        res = await self.session.execute(
            update(Connection)
            .where(Connection.user_id == user_id, Connection.platform == platform, Connection.is_active == True)  # noqa: E712
            .values(is_active=False, updated_at=datetime.utcnow())
        )
        if platform == "facebook":
            await self.session.execute(delete(LinkedAccount).where(LinkedAccount.user_id == user_id))
            await self.session.execute(delete(FacebookPage).where(FacebookPage.user_id == user_id))
        await self.session.commit()
        return res.rowcount or 0

    # --- pages ---
    async def get_page(self, user_id: uuid.UUID, page_id: str) -> Optional[FacebookPage]:
        q = select(FacebookPage).where(FacebookPage.user_id == user_id, FacebookPage.page_id == page_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_pages(self, user_id: uuid.UUID) -> List[FacebookPage]:
        q = select(FacebookPage).where(FacebookPage.user_id == user_id).order_by(FacebookPage.name)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def stage_page(
        self,
        user_id: uuid.UUID,
        connection_id: uuid.UUID,
        page_id: str,
        name: str,
        page_access_token_enc: str,
        tasks: Optional[List[str]] = None,
    ) -> FacebookPage:
        page = await self.get_page(user_id, page_id)
        if page is None:
            page = FacebookPage(user_id=user_id, connection_id=connection_id, page_id=page_id, name=name, page_access_token_enc=page_access_token_enc)
        page.connection_id = connection_id
        page.name = name
        page.page_access_token_enc = page_access_token_enc
        if tasks is not None:
            page.tasks = list(tasks)
        page.updated_at = datetime.utcnow()
        self.session.add(page)
        return page

    # --- linked accounts ---
    async def get_account(self, user_id: uuid.UUID, ig_user_id: str) -> Optional[LinkedAccount]:
        q = select(LinkedAccount).where(LinkedAccount.user_id == user_id, LinkedAccount.ig_user_id == ig_user_id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_accounts(self, user_id: uuid.UUID) -> List[LinkedAccount]:
        q = select(LinkedAccount).where(LinkedAccount.user_id == user_id).order_by(LinkedAccount.username)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def stage_account(self, user_id: uuid.UUID, ig_user_id: str, username: str, page_id: str) -> LinkedAccount:
        account = await self.get_account(user_id, ig_user_id)
        if account is None:
            account = LinkedAccount(user_id=user_id, ig_user_id=ig_user_id, page_id=page_id)
        account.username = username
        account.page_id = page_id
        account.updated_at = datetime.utcnow()
        self.session.add(account)
        return account

    # --- defaults ---
    async def set_default_page(self, user_id: uuid.UUID, page_id: str) -> Optional[FacebookPage]:
        page = await self.get_page(user_id, page_id)
        if page is None:
            return None
        # clear and set in one transaction so at most one row stays flagged
        await self.session.execute(
            update(FacebookPage)
            .where(FacebookPage.user_id == user_id, FacebookPage.page_id != page_id)
            .values(is_default=False)
        )
        page.is_default = True
        page.updated_at = datetime.utcnow()
        self.session.add(page)
        await self.session.commit()
        await self.session.refresh(page)
        return page

    async def set_default_account(self, user_id: uuid.UUID, ig_user_id: str) -> Optional[LinkedAccount]:
        account = await self.get_account(user_id, ig_user_id)
        if account is None:
            return None
        await self.session.execute(
            update(LinkedAccount)
            .where(LinkedAccount.user_id == user_id, LinkedAccount.ig_user_id != ig_user_id)
            .values(is_default=False)
        )
        account.is_default = True
        account.updated_at = datetime.utcnow()
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account
