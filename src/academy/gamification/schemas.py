"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


# --- Badge ---


class BadgeResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    description: str
    icon: str | None = None
    color: str | None = None
    category: str
    requirement: dict[str, Any] = {}
    points: int
    rarity: str


class AllBadgesResponse(BaseModel):
    badges: list[BadgeResponse]


class EarnedBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime
    is_displayed: bool = True


class StudentBadgesResponse(BaseModel):
    earned: list[EarnedBadgeResponse]
    total_available: int
    total_earned: int


# --- Points & level ---


class LevelProgress(BaseModel):
    level: int
    points_into_level: int
    points_for_level: int
    next_level: int


class StudentStatsResponse(BaseModel):
    student_id: int
    total_badges: int
    total_points: int
    monthly_points: int
    experience_points: int
    level: int
    progress: LevelProgress


class AchievementEntry(BaseModel):
    id: int
    action: str
    description: str
    points: int
    metadata: dict[str, Any] = {}
    created_at: datetime


class AchievementHistoryResponse(BaseModel):
    entries: list[AchievementEntry]


# --- Events ---


class GamificationEventRequest(BaseModel):
    student_id: int = Field(..., ge=1)
    event_type: Literal["attendance_marked", "payment_made", "milestone_reached"]
    data: dict[str, Any] = {}


class GamificationEventResponse(BaseModel):
    student_id: int
    event_type: str
    badges_awarded: list[str]
    points_awarded: int
    new_level: int | None = None
