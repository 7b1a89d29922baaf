# autopostr/accounts/repository.py
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import or_, select
from .models import User
from typing import Optional, Union
import uuid
from datetime import datetime


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Optional[User]:
        res = await self.session.execute(select(User).where(User.email == email))
        return res.scalar_one_or_none()

    async def find_conflict(self, email: str, username: str) -> Optional[str]:
        """Which unique field a new account would collide on, if any."""
        res = await self.session.execute(select(User).where(or_(User.email == email, User.username == username)))
        clashes = res.scalars().all()
        if any(u.email == email for u in clashes):
            return "email"
        return "username" if clashes else None

    async def get_by_id(self, user_id: Union[str, uuid.UUID]) -> Optional[User]:
        try:
            key = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
        except ValueError:
            return None
        return await self.session.get(User, key)

    async def create(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_last_login(self, user: User) -> User:
        user.last_login = datetime.utcnow()
        self.session.add(user)
        await self.session.commit()
        return user
