"""Automation rule matchers: which students a campaign tick should message.

Each matcher is an async generator over ``RuleMatch`` items, yielded in
the order the candidate query returns them.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from academy.db.models import Student
from academy.storage import AcademyRepository
from academy.time_utils import as_utc, to_date

logger = logging.getLogger(__name__)

DEFAULT_DAYS_BEFORE = 3
DEFAULT_ABSENCE_THRESHOLD = 3
ATTENDANCE_LOOKBACK_DAYS = 7


@dataclass(frozen=True)
class RuleMatch:
    student: Student
    variables: dict[str, Any]


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def is_fee_due_soon(due_date: datetime, now: datetime, days_before: int = DEFAULT_DAYS_BEFORE) -> bool:
    """True strictly inside ``(due_date - days_before, due_date)``."""
    due = as_utc(due_date)
    return due - timedelta(days=days_before) < as_utc(now) < due


def joined_recently(joining_date: datetime | None, now: datetime) -> bool:
    """Joined within the last day."""
    if joining_date is None:
        return False
    return as_utc(joining_date) > as_utc(now) - timedelta(days=1)


def is_birthday(date_of_birth: date | None, today: date) -> bool:
    if date_of_birth is None:
        return False
    return (date_of_birth.month, date_of_birth.day) == (today.month, today.day)


def format_amount(amount: Decimal | float | int) -> str:
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def sport_name(student: Student) -> str:
    if student.sport is not None:
        return student.sport.name
    if student.batch is not None and student.batch.sport is not None:
        return student.batch.sport.name
    return "Academy"


def batch_name(student: Student) -> str:
    return student.batch.name if student.batch is not None else "Batch"


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


async def match_fee_reminders(
    repo: AcademyRepository,
    conditions: dict[str, Any],
    now: datetime,
) -> AsyncIterator[RuleMatch]:
    days_before = int(conditions.get("daysBefore") or DEFAULT_DAYS_BEFORE)
    for payment in await repo.get_pending_payments():
        if payment.due_date is None or payment.student is None:
            continue
        if is_fee_due_soon(payment.due_date, now, days_before):
            yield RuleMatch(
                student=payment.student,
                variables={
                    "amount": format_amount(payment.amount),
                    "dueDate": as_utc(payment.due_date).strftime("%d %b %Y"),
                    "studentName": payment.student.name,
                },
            )


async def match_welcome_messages(
    repo: AcademyRepository,
    conditions: dict[str, Any],
    now: datetime,
) -> AsyncIterator[RuleMatch]:
    students, _ = await repo.get_students()
    for student in students:
        if joined_recently(student.joining_date, now):
            yield RuleMatch(
                student=student,
                variables={
                    "studentName": student.name,
                    "sportName": sport_name(student),
                    "batchName": batch_name(student),
                },
            )


async def match_attendance_followups(
    repo: AcademyRepository,
    conditions: dict[str, Any],
    now: datetime,
) -> AsyncIterator[RuleMatch]:
    threshold = int(conditions.get("consecutiveAbsences") or DEFAULT_ABSENCE_THRESHOLD)
    # Today and the six days before it
    since = to_date(now) - timedelta(days=ATTENDANCE_LOOKBACK_DAYS - 1)
    students, _ = await repo.get_students()
    for student in students:
        try:
            records = await repo.get_student_attendance(student.id, start=since)
        except Exception:
            logger.exception("Attendance lookup failed for student %s", student.id)
            continue
        absent = sum(1 for r in records if r.status == "absent")
        if absent >= threshold:
            yield RuleMatch(
                student=student,
                variables={
                    "studentName": student.name,
                    "absentDays": absent,
                    "sportName": sport_name(student),
                },
            )


async def match_birthdays(
    repo: AcademyRepository,
    conditions: dict[str, Any],
    now: datetime,
) -> AsyncIterator[RuleMatch]:
    today = to_date(now)
    students, _ = await repo.get_students()
    for student in students:
        if is_birthday(student.date_of_birth, today):
            yield RuleMatch(
                student=student,
                variables={
                    "studentName": student.name,
                    "age": today.year - student.date_of_birth.year,
                },
            )


RuleMatcher = Callable[[AcademyRepository, dict[str, Any], datetime], AsyncIterator[RuleMatch]]

RULE_MATCHERS: dict[str, RuleMatcher] = {
    "fee_reminder": match_fee_reminders,
    "welcome_message": match_welcome_messages,
    "attendance_followup": match_attendance_followups,
    "birthday_wishes": match_birthdays,
}
