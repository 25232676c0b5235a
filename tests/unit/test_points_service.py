"""Points and level engine tests: awards, idempotency, history and level-ups."""

from __future__ import annotations

import json

import pytest
import pytest_asyncio

from academy.gamification.points_service import (
    award_badge,
    award_points,
    points_for_event,
    update_level,
)
from academy.gamification.seed import seed_badges
from academy.storage import AcademyRepository
from academy.time_utils import utcnow


@pytest_asyncio.fixture
async def repo(db_session):
    await seed_badges(db_session)
    return AcademyRepository(db_session)


class TestPointsForEvent:
    def test_fixed_amounts(self):
        assert points_for_event("attendance_marked") == 10
        assert points_for_event("payment_made") == 20

    def test_milestone_uses_event_points(self):
        assert points_for_event("milestone_reached", {"points": 75}) == 75

    def test_milestone_default(self):
        assert points_for_event("milestone_reached", {}) == 50

    def test_unknown_event_gets_default(self):
        assert points_for_event("coach_shoutout") == 5


class TestAwardBadge:
    @pytest.mark.asyncio
    async def test_award_credits_points_and_history(self, repo, make_student, redis_mock):
        student = await make_student()
        badge = await repo.get_badge_by_name("Early Bird")

        assert await award_badge(repo, redis_mock, student.id, badge, "attendance_marked") is True

        points = await repo.get_student_points(student.id)
        assert points.total_points == badge.points
        assert points.experience_points == badge.points
        history = await repo.get_achievement_history(student.id)
        assert [h.action for h in history] == ["badge_earned"]
        assert history[0].entry_metadata["badgeName"] == "Early Bird"

    @pytest.mark.asyncio
    async def test_award_is_idempotent(self, repo, make_student, redis_mock):
        student = await make_student()
        badge = await repo.get_badge_by_name("Newcomer")

        assert await award_badge(repo, redis_mock, student.id, badge) is True
        assert await award_badge(repo, redis_mock, student.id, badge) is False

        assert len(await repo.get_student_badges(student.id)) == 1
        assert (await repo.get_student_points(student.id)).total_points == badge.points

    @pytest.mark.asyncio
    async def test_award_publishes_badge_earned(self, repo, make_student, redis_mock):
        student = await make_student()
        badge = await repo.get_badge_by_name("Newcomer")

        await award_badge(repo, redis_mock, student.id, badge)

        channel, payload = redis_mock.publish.await_args.args
        assert channel == "pubsub:badge_earned"
        assert json.loads(payload)["badge_name"] == "Newcomer"

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_award(self, repo, make_student, redis_mock):
        redis_mock.publish.side_effect = ConnectionError("redis down")
        student = await make_student()
        badge = await repo.get_badge_by_name("Newcomer")

        assert await award_badge(repo, redis_mock, student.id, badge) is True

    @pytest.mark.asyncio
    async def test_duplicate_insert_is_reported_not_raised(self, repo, make_student):
        student = await make_student()
        badge = await repo.get_badge_by_name("Newcomer")
        row = {"student_id": student.id, "badge_id": badge.id, "earned_at": utcnow(), "progress": {}, "is_displayed": True}

        assert await repo.create_student_badge(row) is True
        assert await repo.create_student_badge(row) is False

        assert len(await repo.get_student_badges(student.id)) == 1


class TestAwardPoints:
    @pytest.mark.asyncio
    async def test_points_are_monotonic(self, repo, make_student):
        student = await make_student()
        totals = []
        for event in ["attendance_marked", "payment_made", "milestone_reached", "attendance_marked"]:
            await award_points(repo, student.id, event, {})
            totals.append((await repo.get_student_points(student.id)).total_points)

        assert totals == [10, 30, 80, 90]

    @pytest.mark.asyncio
    async def test_history_row_per_award(self, repo, make_student):
        student = await make_student()
        await award_points(repo, student.id, "payment_made", {"amount": 1500})

        history = await repo.get_achievement_history(student.id)
        assert len(history) == 1
        assert history[0].action == "points_awarded"
        assert history[0].points == 20
        assert history[0].entry_metadata["data"] == {"amount": 1500}


class TestUpdateLevel:
    @pytest.mark.asyncio
    async def test_no_points_row_returns_none(self, repo, make_student, redis_mock):
        student = await make_student()
        assert await update_level(repo, redis_mock, student.id) is None

    @pytest.mark.asyncio
    async def test_level_up_logged_not_credited(self, repo, make_student, redis_mock):
        student = await make_student()
        await repo.add_student_points(student.id, 2100)

        assert await update_level(repo, redis_mock, student.id) == 3

        points = await repo.get_student_points(student.id)
        assert points.level == 3
        assert points.total_points == 2100
        level_rows = [h for h in await repo.get_achievement_history(student.id) if h.action == "level_up"]
        assert len(level_rows) == 1
        assert level_rows[0].points == 300

    @pytest.mark.asyncio
    async def test_same_level_is_a_noop(self, repo, make_student, redis_mock):
        student = await make_student()
        await repo.add_student_points(student.id, 400)

        assert await update_level(repo, redis_mock, student.id) is None
        assert await repo.get_achievement_history(student.id) == []
