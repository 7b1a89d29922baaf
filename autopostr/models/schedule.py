# autopostr/models/schedule.py
from sqlmodel import SQLModel, Field, Column
from typing import List, Optional
import uuid
from datetime import datetime
from sqlalchemy import JSON


class Schedule(SQLModel, table=True):
    """Recurring trigger configuration consumed by the external workflow engine."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    name: str
    description: Optional[str] = None
    interval_value: int
    interval_unit: str  # minutes, hours, days
    time_between_posts: int = Field(default=0)
    time_between_unit: str = Field(default="minutes")  # seconds, minutes, hours
    days_of_week: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    times: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    timezone: str = Field(default="UTC")
    webhook_url: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    last_executed_at: Optional[datetime] = None
    next_execution_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ScheduleExecution(SQLModel, table=True):
    __tablename__ = "schedule_execution"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    schedule_id: uuid.UUID = Field(foreign_key="schedule.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    status: str = Field(default="completed")
    executed_at: datetime = Field(default_factory=datetime.utcnow)
    workflow_execution_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
