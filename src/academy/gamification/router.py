"""Gamification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from academy.dependencies import get_db, get_gamification
from academy.gamification.schemas import (
    AchievementEntry,
    AchievementHistoryResponse,
    AllBadgesResponse,
    BadgeResponse,
    EarnedBadgeResponse,
    GamificationEventRequest,
    GamificationEventResponse,
    StudentBadgesResponse,
    StudentStatsResponse,
)
from academy.gamification.service import GamificationService
from academy.storage import AcademyRepository

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


async def _require_student(repo: AcademyRepository, student_id: int) -> None:
    if await repo.get_student(student_id) is None:
        raise HTTPException(status_code=404, detail="Student not found")


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges(db: AsyncSession = Depends(get_db)):
    """All active badge definitions."""
    badges = await AcademyRepository(db).get_badges(active_only=True)
    return AllBadgesResponse(badges=[BadgeResponse.model_validate(b) for b in badges])


@router.get("/students/{student_id}/gamification", response_model=StudentStatsResponse)
async def student_stats(
    student_id: int,
    service: GamificationService = Depends(get_gamification),
):
    """Badge count, points and level for a student."""
    return StudentStatsResponse(**await service.get_student_stats(student_id))


@router.get("/students/{student_id}/badges", response_model=StudentBadgesResponse)
async def student_badges(student_id: int, db: AsyncSession = Depends(get_db)):
    repo = AcademyRepository(db)
    await _require_student(repo, student_id)
    earned = await repo.get_student_badges(student_id)
    available = await repo.get_badges(active_only=True)
    return StudentBadgesResponse(
        earned=[
            EarnedBadgeResponse(
                badge=BadgeResponse.model_validate(sb.badge),
                earned_at=sb.earned_at,
                is_displayed=sb.is_displayed,
            )
            for sb in earned
        ],
        total_available=len(available),
        total_earned=len(earned),
    )


@router.get("/students/{student_id}/achievements", response_model=AchievementHistoryResponse)
async def student_achievements(
    student_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Achievement history, newest first."""
    repo = AcademyRepository(db)
    await _require_student(repo, student_id)
    entries = await repo.get_achievement_history(student_id, limit=limit)
    return AchievementHistoryResponse(entries=[
        AchievementEntry(
            id=e.id,
            action=e.action,
            description=e.description,
            points=e.points,
            metadata=e.entry_metadata or {},
            created_at=e.created_at,
        )
        for e in entries
    ])


@router.post("/gamification/events", response_model=GamificationEventResponse)
async def process_gamification_event(
    body: GamificationEventRequest,
    db: AsyncSession = Depends(get_db),
    service: GamificationService = Depends(get_gamification),
):
    """Process a gamification event for a student, e.g. after a manual correction."""
    await _require_student(AcademyRepository(db), body.student_id)
    result = await service.process_event(body.student_id, body.event_type, body.data)
    return GamificationEventResponse(
        student_id=result.student_id,
        event_type=result.event_type,
        badges_awarded=result.badges_awarded,
        points_awarded=result.points_awarded,
        new_level=result.new_level,
    )
