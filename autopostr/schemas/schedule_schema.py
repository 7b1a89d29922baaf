# autopostr/schemas/schedule_schema.py
import re
import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

IntervalUnit = Literal["minutes", "hours", "days"]
SpacingUnit = Literal["seconds", "minutes", "hours"]

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _check_days(days: Optional[List[int]]) -> Optional[List[int]]:
    if days is None:
        return days
    for day in days:
        if day < 0 or day > 6:
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6")
    return sorted(set(days))


def _check_times(times: Optional[List[str]]) -> Optional[List[str]]:
    if times is None:
        return times
    for value in times:
        if not _TIME_RE.match(value):
            raise ValueError(f"invalid time '{value}', expected HH:MM")
    return times


class ScheduleCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    interval_value: int = Field(gt=0)
    interval_unit: IntervalUnit
    time_between_posts: int = Field(default=0, ge=0)
    time_between_unit: SpacingUnit = "minutes"
    days_of_week: List[int] = Field(default_factory=list)
    times: List[str] = Field(default_factory=list)
    timezone: str = "UTC"
    webhook_url: Optional[str] = None
    is_active: bool = True

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, v):
        return _check_days(v)

    @field_validator("times")
    @classmethod
    def check_times(cls, v):
        return _check_times(v)


class ScheduleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    interval_value: Optional[int] = Field(default=None, gt=0)
    interval_unit: Optional[IntervalUnit] = None
    time_between_posts: Optional[int] = Field(default=None, ge=0)
    time_between_unit: Optional[SpacingUnit] = None
    days_of_week: Optional[List[int]] = None
    times: Optional[List[str]] = None
    timezone: Optional[str] = None
    webhook_url: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, v):
        return _check_days(v)

    @field_validator("times")
    @classmethod
    def check_times(cls, v):
        return _check_times(v)


class ScheduleRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    interval_value: int
    interval_unit: str
    time_between_posts: int
    time_between_unit: str
    days_of_week: List[int]
    times: List[str]
    timezone: str
    webhook_url: Optional[str] = None
    is_active: bool
    last_executed_at: Optional[datetime] = None
    next_execution_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ExecutionCreate(BaseModel):
    status: str = "completed"
    executed_at: Optional[datetime] = None
    workflow_execution_id: Optional[str] = None
    error_message: Optional[str] = None
