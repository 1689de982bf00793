import uuid
from datetime import date, datetime
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import BaseModel, field_validator


# Enums
class PMFrequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    semi_annually = "semi_annually"
    annually = "annually"


class DueType(str, Enum):
    today = "today"
    overdue = "overdue"


class TargetType(str, Enum):
    asset = "asset"
    location = "location"


# PM Template Schemas
class PMTemplateBase(BaseModel):
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    checklist: Optional[Dict[str, Any]] = None
    estimated_duration_hours: Optional[float] = None
    default_vendor_id: Optional[uuid.UUID] = None


class PMTemplateCreate(PMTemplateBase):
    pass


class PMTemplateUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    checklist: Optional[Dict[str, Any]] = None
    estimated_duration_hours: Optional[float] = None
    default_vendor_id: Optional[uuid.UUID] = None


class PMTemplateResponse(PMTemplateBase):
    id: uuid.UUID
    tenant_id: uuid.UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PMTemplateWithCountResponse(PMTemplateResponse):
    schedule_count: int = 0


# PM Schedule Schemas
class PMScheduleCreate(BaseModel):
    template_id: Optional[uuid.UUID] = None
    # Blank name/description/vendor_id are filled from the template when one is given
    name: Optional[str] = None
    description: Optional[str] = None
    asset_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    frequency: PMFrequency
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    assigned_to: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None
    estimated_cost: Optional[float] = None


class PMScheduleUpdate(BaseModel):
    template_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    description: Optional[str] = None
    asset_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    frequency: Optional[PMFrequency] = None
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    assigned_to: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None
    estimated_cost: Optional[float] = None
    is_active: Optional[bool] = None
    next_due_date: Optional[date] = None  # Explicit override; skips recomputation

    @field_validator("frequency", "is_active", "next_due_date", mode="before")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class PMScheduleResponse(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    template_id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    asset_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    frequency: PMFrequency
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    assigned_to: Optional[uuid.UUID] = None
    vendor_id: Optional[uuid.UUID] = None
    estimated_cost: Optional[float] = None
    is_active: bool
    next_due_date: date
    last_generated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PMScheduleListItem(PMScheduleResponse):
    asset_name: Optional[str] = None
    location_name: Optional[str] = None
    last_completed_at: Optional[date] = None


# PM Completion Schemas
class PMCompletionCreate(BaseModel):
    ticket_id: Optional[uuid.UUID] = None
    checklist_results: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class PMCompletionResponse(BaseModel):
    id: uuid.UUID
    schedule_id: uuid.UUID
    ticket_id: Optional[uuid.UUID] = None
    scheduled_date: date
    completed_date: date
    completed_by: Optional[uuid.UUID] = None
    checklist_results: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PMScheduleDetailResponse(PMScheduleListItem):
    completions: List[PMCompletionResponse] = []


# Projections
class PMCalendarItem(BaseModel):
    schedule_id: uuid.UUID
    name: str
    target_type: TargetType
    target_name: Optional[str] = None
    frequency: PMFrequency
    due_date: date


class PMStatsResponse(BaseModel):
    total: int
    active: int
    due_today: int
    overdue: int
    completed_this_month: int = 0
