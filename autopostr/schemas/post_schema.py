# autopostr/schemas/post_schema.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional
import uuid
from datetime import datetime


class FacebookPostCreate(BaseModel):
    page_id: str = Field(min_length=1)
    message: Optional[str] = None
    link: Optional[str] = None
    photo_url: Optional[str] = None
    video_url: Optional[str] = None
    scheduled_unix: Optional[int] = None


class InstagramPostCreate(BaseModel):
    ig_user_id: str = Field(min_length=1)
    caption: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    scheduled_unix: Optional[int] = None


class PostRead(BaseModel):
    id: uuid.UUID
    target_type: str
    target_id: str
    message: Optional[str] = None
    media_url: Optional[str] = None
    link_url: Optional[str] = None
    status: str
    run_at: datetime
    published_at: Optional[datetime] = None
    result_json: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: datetime


class PostResultUpdate(BaseModel):
    status: Literal["published", "failed"]
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
