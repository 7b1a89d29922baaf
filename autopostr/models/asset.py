# autopostr/models/asset.py
from sqlmodel import SQLModel, Field
from typing import Optional
import uuid
from datetime import datetime


class Asset(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    name: str
    type: str  # image, video, ...
    url: str
    storage_path: Optional[str] = None  # path in object storage
    size: int = Field(default=0)
    rotation_enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
