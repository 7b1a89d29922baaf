# autopostr/models/post.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional
import uuid
from datetime import datetime
from sqlalchemy import String, JSON

POST_STATUSES = ("queued", "published", "failed")
TARGET_TYPES = ("facebook_page", "instagram")


class ScheduledPost(SQLModel, table=True):
    __tablename__ = "scheduled_post"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    target_type: str = Field(sa_column=Column(String, nullable=False))  # facebook_page, instagram
    target_id: str = Field(index=True)
    message: Optional[str] = Field(default=None)
    media_url: Optional[str] = Field(default=None)
    link_url: Optional[str] = Field(default=None)
    status: str = Field(default="queued", index=True)  # queued, published, failed
    run_at: datetime = Field(default_factory=datetime.utcnow)
    published_at: Optional[datetime] = Field(default=None)
    result_json: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    error_message: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
