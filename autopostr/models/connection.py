# autopostr/models/connection.py
from sqlmodel import SQLModel, Field, Column
from typing import List, Optional
from datetime import datetime
import uuid
from sqlalchemy import JSON, String, UniqueConstraint


class Connection(SQLModel, table=True):
    """One authenticated link between a local user and an external platform account."""

    __table_args__ = (UniqueConstraint("user_id", "platform", "platform_user_id"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    platform: str = Field(sa_column=Column(String, index=True, nullable=False))
    platform_user_id: str
    platform_username: Optional[str] = None
    access_token_enc: str
    token_expires_at: Optional[datetime] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class FacebookPage(SQLModel, table=True):
    __tablename__ = "fb_page"
    __table_args__ = (UniqueConstraint("user_id", "page_id"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    connection_id: uuid.UUID = Field(foreign_key="connection.id", index=True)
    page_id: str = Field(sa_column=Column(String, index=True, nullable=False))
    name: str
    page_access_token_enc: str
    tasks: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_default: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LinkedAccount(SQLModel, table=True):
    """Instagram business account linked to a page; `page_id` is the external page id."""

    __tablename__ = "ig_account"
    __table_args__ = (UniqueConstraint("user_id", "ig_user_id"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    ig_user_id: str = Field(sa_column=Column(String, index=True, nullable=False))
    username: str = ""
    page_id: str = Field(index=True)
    is_default: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
