"""Gamification orchestrator tests: event pipeline, atomicity and trigger hooks."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

import pytest

from academy.db.models import Attendance, Badge, StudentBadge
from academy.exceptions import NotFoundError
from academy.gamification.seed import DEFAULT_BADGES
from academy.storage import AcademyRepository
from academy.time_utils import utcnow


async def _snapshot(session_factory, student_id: int) -> dict:
    async with session_factory() as db:
        repo = AcademyRepository(db)
        points = await repo.get_student_points(student_id)
        return {
            "badges": [sb.badge.name for sb in await repo.get_student_badges(student_id)],
            "total_points": points.total_points if points else 0,
            "level": points.level if points else None,
            "history": [h.action for h in await repo.get_achievement_history(student_id, limit=500)],
        }


class TestProcessEvent:
    @pytest.mark.asyncio
    async def test_attendance_event_awards_points(self, gamification, session_factory, make_student):
        student = await make_student(joining_date=utcnow())

        result = await gamification.process_event(student.id, "attendance_marked", {"status": "present"})

        assert result.points_awarded == 10
        assert result.badges_awarded == []
        snapshot = await _snapshot(session_factory, student.id)
        assert snapshot["total_points"] == 10
        assert snapshot["history"] == ["points_awarded"]

    @pytest.mark.asyncio
    async def test_eligible_badges_awarded_once(self, gamification, session_factory, make_student):
        await gamification.initialize_default_badges()
        student = await make_student(joining_date=utcnow() - timedelta(days=10))

        first = await gamification.process_event(student.id, "payment_made", {})
        second = await gamification.process_event(student.id, "payment_made", {})

        # 10 days in: Newcomer; no overdue payments: Financial Responsibility
        assert set(first.badges_awarded) == {"Newcomer", "Financial Responsibility"}
        assert second.badges_awarded == []
        snapshot = await _snapshot(session_factory, student.id)
        assert sorted(snapshot["badges"]) == ["Financial Responsibility", "Newcomer"]
        assert snapshot["total_points"] == 50 + 600 + 20 + 20

    @pytest.mark.asyncio
    async def test_level_up_recorded(self, gamification, session_factory, make_student):
        student = await make_student(joining_date=utcnow())

        result = await gamification.process_event(student.id, "milestone_reached", {"points": 1200})

        assert result.new_level == 2
        snapshot = await _snapshot(session_factory, student.id)
        assert snapshot["level"] == 2
        assert snapshot["total_points"] == 1200
        assert "level_up" in snapshot["history"]

    @pytest.mark.asyncio
    async def test_failure_rolls_back_whole_event(self, gamification, session_factory, make_student, monkeypatch):
        await gamification.initialize_default_badges()
        student = await make_student(joining_date=utcnow() - timedelta(days=10))

        async def broken_award_points(*_args, **_kwargs):
            raise RuntimeError("points store unavailable")

        monkeypatch.setattr("academy.gamification.service.award_points", broken_award_points)

        with pytest.raises(RuntimeError):
            await gamification.process_event(student.id, "payment_made", {})

        snapshot = await _snapshot(session_factory, student.id)
        assert snapshot == {"badges": [], "total_points": 0, "level": None, "history": []}


class TestTriggerHooks:
    @pytest.mark.asyncio
    async def test_attendance_hook_returns_result(self, gamification, make_student):
        student = await make_student()
        result = await gamification.trigger_attendance_event(student.id, {"status": "present"})
        assert result is not None
        assert result.event_type == "attendance_marked"

    @pytest.mark.asyncio
    async def test_payment_hook_uses_payment_event(self, gamification, make_student):
        student = await make_student()
        result = await gamification.trigger_payment_event(student.id, {"amount": 1500})
        assert result.points_awarded == 20

    @pytest.mark.asyncio
    async def test_milestone_hook_uses_event_points(self, gamification, make_student):
        student = await make_student()
        result = await gamification.trigger_milestone_event(student.id, {"points": 120})
        assert result.points_awarded == 120

    @pytest.mark.asyncio
    async def test_hook_swallows_failures(self, gamification, make_student, monkeypatch):
        student = await make_student()

        async def boom(*_args, **_kwargs):
            raise RuntimeError("database gone")

        monkeypatch.setattr(gamification, "process_event", boom)

        assert await gamification.trigger_attendance_event(student.id) is None


class TestStudentStats:
    @pytest.mark.asyncio
    async def test_stats_for_new_student(self, gamification, make_student):
        student = await make_student()
        stats = await gamification.get_student_stats(student.id)
        assert stats["total_badges"] == 0
        assert stats["total_points"] == 0
        assert stats["level"] == 1
        assert stats["progress"]["next_level"] == 2

    @pytest.mark.asyncio
    async def test_stats_unknown_student(self, gamification, session_factory):
        with pytest.raises(NotFoundError):
            await gamification.get_student_stats(4242)


class TestConcurrentAwards:
    @pytest.mark.asyncio
    async def test_badge_awarded_concurrently_keeps_event_points(
        self, gamification, session_factory, db_session, make_student, monkeypatch,
    ):
        newcomer = Badge(**next(b for b in DEFAULT_BADGES if b["name"] == "Newcomer"))
        db_session.add(newcomer)
        await db_session.commit()
        student = await make_student(joining_date=utcnow() - timedelta(days=10))

        # Another request commits the same badge after this event read the earned set
        db_session.add(StudentBadge(student_id=student.id, badge_id=newcomer.id, earned_at=utcnow()))
        await db_session.commit()

        async def stale_badges(self, student_id):
            return []

        async def not_held(self, student_id, badge_id):
            return False

        monkeypatch.setattr(AcademyRepository, "get_student_badges", stale_badges)
        monkeypatch.setattr(AcademyRepository, "has_student_badge", not_held)

        result = await gamification.trigger_attendance_event(student.id, {"status": "present"})

        monkeypatch.undo()
        assert result is not None
        assert result.badges_awarded == []
        assert result.points_awarded == 10
        snapshot = await _snapshot(session_factory, student.id)
        assert snapshot["badges"] == ["Newcomer"]
        assert snapshot["total_points"] == 10
        assert snapshot["history"] == ["points_awarded"]

    @pytest.mark.asyncio
    async def test_points_row_created_by_another_session(self, session_factory, make_student):
        student = await make_student()

        async with session_factory() as db:
            repo = AcademyRepository(db)
            assert await repo.get_student_points(student.id) is None

            async with session_factory() as other:
                await AcademyRepository(other).add_student_points(student.id, 100)
                await other.commit()

            points = await repo.add_student_points(student.id, 10)
            await db.commit()

        assert points.total_points == 110
        assert points.experience_points == 110


class TestThirtyDayScenario:
    @pytest.mark.asyncio
    async def test_thirty_present_days(self, gamification, session_factory, db_session, make_student):
        """30 consecutive present days with only Perfect Attendance defined."""
        repo = AcademyRepository(db_session)
        perfect = next(b for b in DEFAULT_BADGES if b["name"] == "Perfect Attendance")
        await repo.create_badge(dict(perfect))
        await db_session.commit()

        first_day = utcnow().date() - timedelta(days=29)
        student = await make_student(joining_date=datetime.combine(first_day, time.min, tzinfo=timezone.utc))

        awarded_on = []
        for offset in range(30):
            day = first_day + timedelta(days=offset)
            db_session.add(Attendance(student_id=student.id, attended_on=day, status="present"))
            await db_session.commit()

            result = await gamification.process_event(
                student.id,
                "attendance_marked",
                {"status": "present"},
                timestamp=datetime.combine(day, time(18, 0), tzinfo=timezone.utc),
            )
            if result.badges_awarded:
                awarded_on.append((offset + 1, result.badges_awarded))

        assert awarded_on == [(30, ["Perfect Attendance"])]
        snapshot = await _snapshot(session_factory, student.id)
        assert snapshot["badges"] == ["Perfect Attendance"]
        assert snapshot["total_points"] == 30 * 10 + 500
        assert snapshot["level"] == 1
