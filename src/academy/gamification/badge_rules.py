"""Badge rule evaluator: decides which badges a student has newly earned."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from academy.db.models import Attendance, Badge, Payment, PerformanceAssessment, Student
from academy.storage import AcademyRepository
from academy.time_utils import as_utc, days_between, start_of_month, to_date, utcnow

logger = logging.getLogger(__name__)

SKILL_LEVEL_RANKS: dict[str, int] = {
    "beginner": 1,
    "intermediate": 3,
    "advanced": 5,
}

# Milestone thresholds measured in days since joining; 100 counts sessions instead
_TENURE_MILESTONES = {7, 365}
_SESSION_MILESTONE = 100
WEEK_DAYS = 7


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------


def attendance_streak(records: Iterable[Attendance]) -> int:
    """Current trailing run of ``present`` records, most recent first."""
    streak = 0
    for record in sorted(records, key=lambda r: (r.attended_on, r.id or 0), reverse=True):
        if record.status != "present":
            break
        streak += 1
    return streak


def window_start(timeframe: str | None, now: datetime) -> date | None:
    """First calendar day a timeframe covers, or None for all records.

    A weekly window is today and the six days before it.
    """
    if timeframe == "monthly":
        return start_of_month(now).date()
    if timeframe == "weekly":
        return to_date(now) - timedelta(days=WEEK_DAYS - 1)
    return None


def attendance_percentage(records: Iterable[Attendance], timeframe: str | None, now: datetime) -> int:
    """Rounded present/total percentage over the timeframe window; 0 without records."""
    start = window_start(timeframe, now)
    window = [r for r in records if start is None or r.attended_on >= start]
    if not window:
        return 0
    present = sum(1 for r in window if r.status == "present")
    return round(present / len(window) * 100)


def payment_streak(payments: Iterable[Payment]) -> int:
    """Consecutive on-time payments ordered by due date, newest first."""
    ordered = sorted(
        (p for p in payments if p.due_date is not None),
        key=lambda p: as_utc(p.due_date),
        reverse=True,
    )
    streak = 0
    for payment in ordered:
        on_time = (
            payment.status == "completed"
            and payment.paid_date is not None
            and as_utc(payment.paid_date) <= as_utc(payment.due_date)
        )
        if not on_time:
            break
        streak += 1
    return streak


def skill_rank(skill_level: str | None) -> int:
    """Numeric rank of a skill level name; numeric strings are taken as-is."""
    if not skill_level:
        return 0
    normalized = skill_level.strip().lower()
    if normalized in SKILL_LEVEL_RANKS:
        return SKILL_LEVEL_RANKS[normalized]
    try:
        return int(normalized)
    except ValueError:
        return 0


def performance_improvement(
    history: Sequence[PerformanceAssessment],
    timeframe: str | None,
    now: datetime,
) -> int:
    """Number of assessments in the window that beat the one before them."""
    start = window_start(timeframe, now)
    window = [a for a in history if start is None or a.assessed_on >= start]
    window.sort(key=lambda a: (a.assessed_on, a.id or 0))
    return sum(1 for prev, cur in zip(window, window[1:]) if cur.score > prev.score)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class BadgeRuleEvaluator:
    """Evaluates badge conditions for one student against repository state.

    Student, attendance and payment reads are cached for the
    lifetime of the evaluator, so create one per event.
    """

    def __init__(self, repo: AcademyRepository, now: datetime | None = None) -> None:
        self.repo = repo
        self.now = now or utcnow()
        self._student: dict[int, Student | None] = {}
        self._attendance: dict[int, list[Attendance]] = {}
        self._payments: dict[int, list[Payment]] = {}

    async def evaluate(
        self,
        student_id: int,
        active_badges: Iterable[Badge],
        earned_badge_ids: Iterable[int],
        event_type: str,
        event_data: dict[str, Any] | None = None,
    ) -> list[Badge]:
        """Return active badges not yet earned whose condition now holds."""
        earned = set(earned_badge_ids)
        eligible: list[Badge] = []
        for badge in active_badges:
            if not badge.is_active or badge.id in earned:
                continue
            if await self.is_eligible(student_id, badge, event_type, event_data or {}):
                eligible.append(badge)
        return eligible

    async def is_eligible(
        self,
        student_id: int,
        badge: Badge,
        event_type: str,
        event_data: dict[str, Any],
    ) -> bool:
        condition = badge.requirement or {}
        handler = {
            "attendance": self._attendance_condition,
            "payment": self._payment_condition,
            "performance": self._performance_condition,
            "milestone": self._milestone_condition,
        }.get(condition.get("type", ""))
        if handler is None:
            logger.debug("Badge %s has unknown condition type %r", badge.name, condition.get("type"))
            return False
        return await handler(student_id, condition, event_data)

    async def _attendance_condition(self, student_id: int, condition: dict, _event_data: dict) -> bool:
        operator = condition.get("operator")
        value = condition.get("value", 0)
        records = await self._get_attendance(student_id)
        if operator == "streak":
            return attendance_streak(records) >= value
        if operator == "greater":
            return attendance_percentage(records, condition.get("timeframe"), self.now) >= value
        return False

    async def _payment_condition(self, student_id: int, condition: dict, _event_data: dict) -> bool:
        operator = condition.get("operator")
        value = condition.get("value", 0)
        payments = await self._get_payments(student_id)
        if operator == "streak":
            return payment_streak(payments) >= value
        if operator == "equals" and value == 0:
            return not any(p.status == "overdue" for p in payments)
        return False

    async def _performance_condition(self, student_id: int, condition: dict, event_data: dict) -> bool:
        operator = condition.get("operator")
        value = condition.get("value", 0)
        if operator == "equals":
            student = await self._get_student(student_id)
            return student is not None and skill_rank(student.skill_level) >= value
        if operator == "greater":
            if "performance_improvement" in event_data:
                improvement = int(event_data["performance_improvement"])
            else:
                history = await self.repo.get_student_performance_history(student_id)
                improvement = performance_improvement(history, condition.get("timeframe"), self.now)
            return improvement >= value
        return False

    async def _milestone_condition(self, student_id: int, condition: dict, _event_data: dict) -> bool:
        if condition.get("operator") != "greater":
            return False
        value = condition.get("value", 0)
        if value in _TENURE_MILESTONES:
            student = await self._get_student(student_id)
            if student is None or student.joining_date is None:
                return False
            return days_between(student.joining_date, self.now) >= value
        if value == _SESSION_MILESTONE:
            return await self.repo.get_student_attendance_count(student_id) >= value
        return False

    # -- cached reads --

    async def _get_student(self, student_id: int) -> Student | None:
        if student_id not in self._student:
            self._student[student_id] = await self.repo.get_student(student_id)
        return self._student[student_id]

    async def _get_attendance(self, student_id: int) -> list[Attendance]:
        if student_id not in self._attendance:
            self._attendance[student_id] = await self.repo.get_student_attendance(student_id)
        return self._attendance[student_id]

    async def _get_payments(self, student_id: int) -> list[Payment]:
        if student_id not in self._payments:
            self._payments[student_id] = await self.repo.get_student_payments(student_id)
        return self._payments[student_id]

