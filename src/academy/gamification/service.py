"""Gamification orchestrator: event -> badges -> points -> level, in one transaction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.exceptions import NotFoundError
from academy.gamification.badge_rules import BadgeRuleEvaluator
from academy.gamification.levels import level_progress
from academy.gamification.points_service import award_badge, award_points, update_level
from academy.gamification.seed import seed_badges
from academy.storage import AcademyRepository
from academy.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class GamificationResult:
    """What one processed event changed for a student."""

    student_id: int
    event_type: str
    badges_awarded: list[str] = field(default_factory=list)
    points_awarded: int = 0
    new_level: int | None = None


class GamificationService:
    """Entry point the host calls when attendance is marked or a payment completes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: object | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.redis = redis

    async def initialize_default_badges(self) -> int:
        async with self._session_factory() as db:
            return await seed_badges(db)

    async def process_event(
        self,
        student_id: int,
        event_type: str,
        event_data: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> GamificationResult:
        """Evaluate badges, award points and recheck the level.

        Every write happens in a single transaction: either the whole event
        applies or none of it does.
        """
        event_data = event_data or {}
        result = GamificationResult(student_id=student_id, event_type=event_type)

        async with self._session_factory() as db:
            repo = AcademyRepository(db)
            try:
                badges = await repo.get_badges(active_only=True)
                earned_ids = [sb.badge_id for sb in await repo.get_student_badges(student_id)]

                evaluator = BadgeRuleEvaluator(repo, now=timestamp or utcnow())
                for badge in await evaluator.evaluate(student_id, badges, earned_ids, event_type, event_data):
                    if await award_badge(repo, self.redis, student_id, badge, event_type):
                        result.badges_awarded.append(badge.name)

                result.points_awarded = await award_points(repo, student_id, event_type, event_data)
                result.new_level = await update_level(repo, self.redis, student_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        return result

    async def _trigger(self, student_id: int, event_type: str, data: dict[str, Any] | None) -> GamificationResult | None:
        # Gamification must never fail the attendance/payment write that triggered it
        try:
            return await self.process_event(student_id, event_type, data, timestamp=utcnow())
        except Exception:
            logger.exception("Gamification %s failed for student %s", event_type, student_id)
            return None

    async def trigger_attendance_event(self, student_id: int, data: dict[str, Any] | None = None) -> GamificationResult | None:
        return await self._trigger(student_id, "attendance_marked", data)

    async def trigger_payment_event(self, student_id: int, data: dict[str, Any] | None = None) -> GamificationResult | None:
        return await self._trigger(student_id, "payment_made", data)

    async def trigger_milestone_event(self, student_id: int, data: dict[str, Any] | None = None) -> GamificationResult | None:
        return await self._trigger(student_id, "milestone_reached", data)

    # -- Read side --

    async def get_student_stats(self, student_id: int) -> dict[str, Any]:
        """Badge count, points and level summary for one student."""
        async with self._session_factory() as db:
            repo = AcademyRepository(db)
            if await repo.get_student(student_id) is None:
                raise NotFoundError(f"Student {student_id} not found")
            badges = await repo.get_student_badges(student_id)
            points = await repo.get_student_points(student_id)

        experience = points.experience_points if points else 0
        return {
            "student_id": student_id,
            "total_badges": len(badges),
            "total_points": points.total_points if points else 0,
            "monthly_points": points.monthly_points if points else 0,
            "experience_points": experience,
            # Stored level, which update_level keeps equal to the derived one
            "level": points.level if points else 1,
            "progress": level_progress(experience),
        }
