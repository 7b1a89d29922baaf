# autopostr/schemas/asset_schema.py
from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional
import uuid
from datetime import datetime


class AssetCreate(BaseModel):
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    url: str = Field(min_length=1)
    storage_path: Optional[str] = None  # path in object storage
    size: int = Field(default=0, ge=0)
    rotation_enabled: bool = True


class AssetRead(BaseModel):
    id: uuid.UUID
    name: str
    type: str
    url: str
    storage_path: Optional[str] = None
    size: int
    rotation_enabled: bool
    created_at: datetime


class FilterCondition(BaseModel):
    field: str
    op: str
    value: Any = None


class AssetSearch(BaseModel):
    match: Literal["all", "any"] = "all"
    conditions: List[FilterCondition] = Field(default_factory=list)
