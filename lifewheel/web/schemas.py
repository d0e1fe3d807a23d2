from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class CategoryResponse(BaseModel):
    id: str
    name: str
    color: str


class RegisterRequest(BaseModel):
    name: str
    mobile: str
    age: int
    email: str


class UserResponse(BaseModel):
    id: str
    username: str
    name: str
    mobile: str
    age: int
    email: str
    role: Literal["USER", "ADMIN"]


class AdminSettingsPayload(BaseModel):
    intro_text: str
    advice_template_low: str
    advice_template_high: str
    advice_template_unbalanced: str


class AssessmentCreateRequest(BaseModel):
    user_id: str


class ScoreUpdateRequest(BaseModel):
    score: int


class ReportRequest(BaseModel):
    email: str


class ReportResponse(BaseModel):
    status: Literal["queued"] = "queued"
    entry_id: str
    email: str
    queued_at: datetime


class PersistRetryResponse(BaseModel):
    saved: bool
    unsaved_count: int
    notice: Optional[str] = None


class WheelEntryResponse(BaseModel):
    id: str
    user_id: str
    created_at: datetime
    scores: dict[str, int]
    narrative: Optional[str] = None
    contact_email: Optional[str] = None
    average: float


class TrendPointResponse(BaseModel):
    label: str
    created_at: datetime
    average: float


class TrendResponse(BaseModel):
    user_id: str
    window_size: int
    points: list[TrendPointResponse]
    figure: dict[str, Any]


class AdminStatisticsResponse(BaseModel):
    total_users: int
    total_entries: int
    overall_average: float
    category_averages: dict[str, float]
    figure: dict[str, Any]


class NotificationRequest(BaseModel):
    channel: str = Field(..., description="sms, whatsapp or email")


class NotificationResponse(BaseModel):
    channel: str
    queued: int
