# autopostr/schemas/connection_schema.py
from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from datetime import datetime


class AuthorizeRequest(BaseModel):
    redirect_uri: Optional[str] = None


class CallbackRequest(BaseModel):
    code: str = Field(min_length=1)
    state: str = Field(min_length=1)
    redirect_uri: Optional[str] = None


class PageSelection(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    access_token: str = Field(min_length=1)
    tasks: List[str] = Field(default_factory=list)


class AccountSelection(BaseModel):
    ig_user_id: str = Field(min_length=1)
    username: str = ""
    page_id: str = Field(min_length=1)
    page_name: str = ""
    page_access_token: str = Field(min_length=1)


class SelectionRequest(BaseModel):
    pages: List[PageSelection] = Field(default_factory=list)
    ig_accounts: List[AccountSelection] = Field(default_factory=list)


# read models never carry tokens, encrypted or not
class ConnectionRead(BaseModel):
    id: uuid.UUID
    platform: str
    platform_user_id: str
    platform_username: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PageRead(BaseModel):
    id: uuid.UUID
    page_id: str
    name: str
    tasks: Optional[List[str]] = None
    is_default: bool


class AccountRead(BaseModel):
    id: uuid.UUID
    ig_user_id: str
    username: str
    page_id: str
    is_default: bool
