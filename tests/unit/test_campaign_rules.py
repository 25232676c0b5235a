"""Campaign rule matcher tests: predicates and the four rule types."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from academy.campaigns.rules import (
    RULE_MATCHERS,
    format_amount,
    is_birthday,
    is_fee_due_soon,
    joined_recently,
)
from academy.storage import AcademyRepository

NOW = datetime(2026, 3, 20, 9, 0, tzinfo=timezone.utc)


async def _collect(matcher, repo, conditions):
    return [match async for match in matcher(repo, conditions, NOW)]


class TestPredicates:
    def test_fee_due_in_two_days_matches(self):
        assert is_fee_due_soon(NOW + timedelta(days=2), NOW)

    def test_fee_due_in_five_days_does_not_match(self):
        assert not is_fee_due_soon(NOW + timedelta(days=5), NOW)

    def test_fee_already_due_does_not_match(self):
        assert not is_fee_due_soon(NOW - timedelta(hours=1), NOW)

    def test_fee_window_is_open_at_the_far_end(self):
        assert not is_fee_due_soon(NOW + timedelta(days=3), NOW)
        assert is_fee_due_soon(NOW + timedelta(days=3) - timedelta(seconds=1), NOW)

    def test_fee_window_respects_days_before(self):
        assert is_fee_due_soon(NOW + timedelta(days=5), NOW, days_before=7)

    def test_naive_due_date_treated_as_utc(self):
        assert is_fee_due_soon((NOW + timedelta(days=1)).replace(tzinfo=None), NOW)

    def test_joined_recently(self):
        assert joined_recently(NOW - timedelta(hours=3), NOW)
        assert not joined_recently(NOW - timedelta(days=2), NOW)
        assert not joined_recently(None, NOW)

    def test_birthday_ignores_year(self):
        assert is_birthday(date(2014, 3, 20), NOW.date())
        assert not is_birthday(date(2014, 3, 21), NOW.date())
        assert not is_birthday(None, NOW.date())

    @pytest.mark.parametrize(("amount", "text"), [
        (Decimal("1500.00"), "1500"), (Decimal("1499.5"), "1499.50"), (800, "800"),
    ])
    def test_format_amount(self, amount, text):
        assert format_amount(amount) == text


class TestFeeReminderMatcher:
    @pytest.mark.asyncio
    async def test_only_pending_payments_inside_window(self, db_session, make_student, add_payment):
        soon = await make_student(name="Asha")
        later = await make_student(name="Ravi")
        paid = await make_student(name="Meera")
        await add_payment(soon.id, due_date=NOW + timedelta(days=2), amount=Decimal("1500.00"))
        await add_payment(later.id, due_date=NOW + timedelta(days=5))
        await add_payment(paid.id, due_date=NOW + timedelta(days=1), status="completed")

        matches = await _collect(RULE_MATCHERS["fee_reminder"], AcademyRepository(db_session), {"daysBefore": 3})

        assert [m.student.id for m in matches] == [soon.id]
        assert matches[0].variables == {"amount": "1500", "dueDate": "22 Mar 2026", "studentName": "Asha"}

    @pytest.mark.asyncio
    async def test_days_before_defaults_to_three(self, db_session, make_student, add_payment):
        student = await make_student()
        await add_payment(student.id, due_date=NOW + timedelta(days=2, hours=12))

        matches = await _collect(RULE_MATCHERS["fee_reminder"], AcademyRepository(db_session), {})

        assert len(matches) == 1


class TestWelcomeMatcher:
    @pytest.mark.asyncio
    async def test_recent_joiners_with_sport_and_batch(self, db_session, make_student, make_sport_batch):
        sport, batch = await make_sport_batch("Badminton", "Evening Seniors")
        newcomer = await make_student(name="Kiran", joining_date=NOW - timedelta(hours=2),
                                      sport_id=sport.id, batch_id=batch.id)
        await make_student(joining_date=NOW - timedelta(days=3))

        matches = await _collect(RULE_MATCHERS["welcome_message"], AcademyRepository(db_session), {})

        assert [m.student.id for m in matches] == [newcomer.id]
        assert matches[0].variables == {
            "studentName": "Kiran",
            "sportName": "Badminton",
            "batchName": "Evening Seniors",
        }

    @pytest.mark.asyncio
    async def test_fallback_names(self, db_session, make_student):
        await make_student(joining_date=NOW - timedelta(minutes=5))

        matches = await _collect(RULE_MATCHERS["welcome_message"], AcademyRepository(db_session), {})

        assert matches[0].variables["sportName"] == "Academy"
        assert matches[0].variables["batchName"] == "Batch"


class TestAttendanceFollowupMatcher:
    @pytest.mark.asyncio
    async def test_absences_in_last_week(self, db_session, make_student, add_attendance):
        frequent_absentee = await make_student(name="Dev")
        regular = await make_student()
        await add_attendance(frequent_absentee.id, ["absent", "present", "absent", "absent"], last_day=NOW.date())
        await add_attendance(regular.id, ["present", "absent", "present", "present"], last_day=NOW.date())

        matches = await _collect(
            RULE_MATCHERS["attendance_followup"], AcademyRepository(db_session), {"consecutiveAbsences": 3}
        )

        assert [m.student.id for m in matches] == [frequent_absentee.id]
        assert matches[0].variables["absentDays"] == 3

    @pytest.mark.asyncio
    async def test_old_absences_are_ignored(self, db_session, make_student, add_attendance):
        student = await make_student()
        await add_attendance(student.id, ["absent"] * 4, last_day=NOW.date() - timedelta(days=20))

        matches = await _collect(RULE_MATCHERS["attendance_followup"], AcademyRepository(db_session), {})

        assert matches == []

    @pytest.mark.asyncio
    async def test_window_covers_today_and_six_days_before(self, db_session, make_student, add_attendance):
        # Absences on days -7, -6, -5: the first falls outside the window
        edge = await make_student(name="Edge")
        await add_attendance(edge.id, ["absent"] * 3, last_day=NOW.date() - timedelta(days=5))
        # Absences on days -6, -5, -4: all inside
        inside = await make_student(name="Inside")
        await add_attendance(inside.id, ["absent"] * 3, last_day=NOW.date() - timedelta(days=4))

        matches = await _collect(RULE_MATCHERS["attendance_followup"], AcademyRepository(db_session), {})

        assert [m.student.id for m in matches] == [inside.id]
        assert matches[0].variables["absentDays"] == 3


class TestBirthdayMatcher:
    @pytest.mark.asyncio
    async def test_birthday_today_with_age(self, db_session, make_student):
        birthday = await make_student(name="Isha", date_of_birth=date(2014, 3, 20))
        await make_student(date_of_birth=date(2014, 3, 19))
        await make_student(date_of_birth=None)

        matches = await _collect(RULE_MATCHERS["birthday_wishes"], AcademyRepository(db_session), {})

        assert [m.student.id for m in matches] == [birthday.id]
        assert matches[0].variables == {"studentName": "Isha", "age": 12}
