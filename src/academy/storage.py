"""Repository over the academy schema.

Every accessor the automation core needs from the data layer lives here.
Writes are flushed, never committed: the caller owns the transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.base import Base
from academy.db.models import (
    AchievementHistory,
    Attendance,
    Badge,
    Campaign,
    CampaignMessage,
    Payment,
    PerformanceAssessment,
    Student,
    StudentBadge,
    StudentPoints,
)
from academy.time_utils import utcnow


class AcademyRepository:
    """Async data access for students, payments, attendance, badges and campaigns."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _insert(self, model: type[Base]):
        """Dialect insert with ON CONFLICT support (PostgreSQL in production, SQLite in tests)."""
        if self.session.get_bind().dialect.name == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    # -- Badges ---------------------------------------------------------------

    async def get_badges(self, active_only: bool = True) -> list[Badge]:
        query = select(Badge).order_by(Badge.id)
        if active_only:
            query = query.where(Badge.is_active.is_(True))
        result = await self.session.execute(query)
        return list(result.scalars())

    async def get_badge_by_name(self, name: str) -> Badge | None:
        result = await self.session.execute(select(Badge).where(Badge.name == name))
        return result.scalar_one_or_none()

    async def create_badge(self, data: dict[str, Any]) -> Badge:
        badge = Badge(**data)
        self.session.add(badge)
        await self.session.flush()
        return badge

    async def get_student_badges(self, student_id: int) -> list[StudentBadge]:
        result = await self.session.execute(
            select(StudentBadge)
            .where(StudentBadge.student_id == student_id)
            .order_by(StudentBadge.earned_at.desc())
        )
        return list(result.unique().scalars())

    async def has_student_badge(self, student_id: int, badge_id: int) -> bool:
        result = await self.session.execute(
            select(StudentBadge.id).where(
                StudentBadge.student_id == student_id,
                StudentBadge.badge_id == badge_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def create_student_badge(self, data: dict[str, Any]) -> bool:
        """Insert a student badge. Returns False when the student already holds it.

        The conflict is resolved in the database, so a concurrent award of
        the same badge leaves the surrounding transaction usable.
        """
        stmt = self._insert(StudentBadge).values(**data)
        stmt = stmt.on_conflict_do_nothing(index_elements=["student_id", "badge_id"])
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    # -- Points -----------------------------------------------------------------

    async def get_student_points(self, student_id: int) -> StudentPoints | None:
        result = await self.session.execute(
            select(StudentPoints)
            .where(StudentPoints.student_id == student_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_student_points(self, student_id: int, delta: int) -> StudentPoints | None:
        """Add ``delta`` to total, experience and monthly points, creating the row if needed."""
        stmt = self._insert(StudentPoints).values(
            student_id=student_id,
            total_points=delta,
            experience_points=delta,
            monthly_points=delta,
            level=1,
            last_updated=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["student_id"],
            set_={
                "total_points": StudentPoints.total_points + stmt.excluded.total_points,
                "experience_points": StudentPoints.experience_points + stmt.excluded.experience_points,
                "monthly_points": StudentPoints.monthly_points + stmt.excluded.monthly_points,
                "last_updated": stmt.excluded.last_updated,
            },
        )
        await self.session.execute(stmt)
        return await self.get_student_points(student_id)

    async def update_student_level(self, student_id: int, level: int) -> None:
        points = await self.get_student_points(student_id)
        if points is None:
            return
        points.level = level
        points.last_updated = utcnow()
        await self.session.flush()

    async def create_achievement_history(self, entry: dict[str, Any]) -> AchievementHistory:
        record = AchievementHistory(**entry)
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_achievement_history(self, student_id: int, limit: int = 50) -> list[AchievementHistory]:
        result = await self.session.execute(
            select(AchievementHistory)
            .where(AchievementHistory.student_id == student_id)
            .order_by(AchievementHistory.created_at.desc(), AchievementHistory.id.desc())
            .limit(limit)
        )
        return list(result.scalars())

    # -- Students, attendance, payments -----------------------------------------

    async def get_student(self, student_id: int) -> Student | None:
        result = await self.session.execute(select(Student).where(Student.id == student_id))
        return result.unique().scalar_one_or_none()

    async def get_students(
        self,
        *,
        is_active: bool | None = None,
        sport_id: int | None = None,
        batch_id: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[Student], int]:
        """Return ``(students, total)`` for the given filter."""
        conditions = []
        if is_active is not None:
            conditions.append(Student.is_active.is_(is_active))
        if sport_id is not None:
            conditions.append(Student.sport_id == sport_id)
        if batch_id is not None:
            conditions.append(Student.batch_id == batch_id)

        query = select(Student).where(*conditions).order_by(Student.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        students = list(result.unique().scalars())

        total = await self.session.scalar(select(func.count()).select_from(Student).where(*conditions))
        return students, int(total or 0)

    async def get_student_attendance(
        self,
        student_id: int,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Attendance]:
        """Attendance records, most recent first."""
        conditions = [Attendance.student_id == student_id]
        if start is not None:
            conditions.append(Attendance.attended_on >= start)
        if end is not None:
            conditions.append(Attendance.attended_on <= end)
        result = await self.session.execute(
            select(Attendance).where(*conditions).order_by(Attendance.attended_on.desc(), Attendance.id.desc())
        )
        return list(result.scalars())

    async def get_student_attendance_count(self, student_id: int) -> int:
        """Number of sessions the student was present for."""
        total = await self.session.scalar(
            select(func.count())
            .select_from(Attendance)
            .where(Attendance.student_id == student_id, Attendance.status == "present")
        )
        return int(total or 0)

    async def get_student_payments(self, student_id: int) -> list[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.student_id == student_id).order_by(Payment.due_date.desc())
        )
        return list(result.unique().scalars())

    async def get_pending_payments(self) -> list[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.status == "pending").order_by(Payment.due_date.desc())
        )
        return list(result.unique().scalars())

    async def get_student_performance_history(
        self,
        student_id: int,
        start: date | None = None,
    ) -> list[PerformanceAssessment]:
        """Assessments in chronological order."""
        conditions = [PerformanceAssessment.student_id == student_id]
        if start is not None:
            conditions.append(PerformanceAssessment.assessed_on >= start)
        result = await self.session.execute(
            select(PerformanceAssessment)
            .where(*conditions)
            .order_by(PerformanceAssessment.assessed_on, PerformanceAssessment.id)
        )
        return list(result.scalars())

    # -- Campaigns ----------------------------------------------------------------

    async def get_campaigns(self, status: str | None = None, type: str | None = None) -> list[Campaign]:  # noqa: A002
        query = select(Campaign).order_by(Campaign.created_at, Campaign.id)
        if status is not None:
            query = query.where(Campaign.status == status)
        if type is not None:
            query = query.where(Campaign.type == type)
        result = await self.session.execute(query)
        return list(result.scalars())

    async def get_campaign(self, campaign_id: int) -> Campaign | None:
        return await self.session.get(Campaign, campaign_id, populate_existing=True)

    async def create_campaign(self, data: dict[str, Any]) -> Campaign:
        campaign = Campaign(**data)
        self.session.add(campaign)
        await self.session.flush()
        return campaign

    async def update_campaign(self, campaign_id: int, updates: dict[str, Any]) -> Campaign | None:
        campaign = await self.session.get(Campaign, campaign_id)
        if campaign is None:
            return None
        for key, value in updates.items():
            setattr(campaign, key, value)
        campaign.updated_at = utcnow()
        await self.session.flush()
        return campaign

    async def delete_campaign(self, campaign_id: int) -> bool:
        await self.session.execute(delete(CampaignMessage).where(CampaignMessage.campaign_id == campaign_id))
        result = await self.session.execute(delete(Campaign).where(Campaign.id == campaign_id))
        return result.rowcount > 0

    async def get_campaign_messages(self, campaign_id: int, limit: int | None = None) -> list[CampaignMessage]:
        query = (
            select(CampaignMessage)
            .where(CampaignMessage.campaign_id == campaign_id)
            .order_by(CampaignMessage.created_at.desc(), CampaignMessage.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars())

    async def create_campaign_message(self, data: dict[str, Any]) -> CampaignMessage:
        message = CampaignMessage(**data)
        self.session.add(message)
        await self.session.flush()
        return message

    async def update_campaign_message(self, message_id: int, updates: dict[str, Any]) -> CampaignMessage | None:
        message = await self.session.get(CampaignMessage, message_id)
        if message is None:
            return None
        for key, value in updates.items():
            setattr(message, key, value)
        await self.session.flush()
        return message

    async def has_sent_campaign_message_since(self, campaign_id: int, student_id: int, since: datetime) -> bool:
        result = await self.session.execute(
            select(CampaignMessage.id)
            .where(
                CampaignMessage.campaign_id == campaign_id,
                CampaignMessage.student_id == student_id,
                CampaignMessage.status == "sent",
                CampaignMessage.created_at >= since,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None
