# autopostr/accounts/models.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
from datetime import datetime
import uuid
from sqlalchemy import String


class User(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    username: str = Field(sa_column=Column(String, unique=True, index=True, nullable=False))
    hashed_password: str
    is_active: bool = Field(default=True)
    is_superuser: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login: Optional[datetime] = None
