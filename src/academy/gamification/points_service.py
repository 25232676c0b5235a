"""Points and level engine: badge awards, event points and level-ups.

All writes go through the repository and are flushed into the caller's
transaction; nothing here commits.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from academy.db.models import Badge
from academy.gamification.levels import compute_level, level_up_bonus
from academy.realtime import BADGE_EARNED_CHANNEL, LEVEL_UP_CHANNEL, publish_event
from academy.storage import AcademyRepository
from academy.time_utils import utcnow

logger = logging.getLogger(__name__)

EVENT_POINTS: dict[str, int] = {
    "attendance_marked": 10,
    "payment_made": 20,
}
DEFAULT_MILESTONE_POINTS = 50
DEFAULT_EVENT_POINTS = 5


def points_for_event(event_type: str, event_data: dict[str, Any] | None = None) -> int:
    """Fixed points per event type; milestones may carry their own amount."""
    if event_type == "milestone_reached":
        return int((event_data or {}).get("points") or DEFAULT_MILESTONE_POINTS)
    return EVENT_POINTS.get(event_type, DEFAULT_EVENT_POINTS)


async def award_badge(
    repo: AcademyRepository,
    redis: object | None,
    student_id: int,
    badge: Badge,
    event_type: str | None = None,
) -> bool:
    """Award a badge to a student.

    Returns False if the student already holds it, including when a
    concurrent award wins the insert. Otherwise:
    1. Insert into student_badges (UNIQUE per student and badge)
    2. Credit the badge points
    3. Append a badge_earned history entry
    4. Publish a badge_earned event
    """
    if await repo.has_student_badge(student_id, badge.id):
        return False

    if not await repo.create_student_badge({
        "student_id": student_id,
        "badge_id": badge.id,
        "earned_at": utcnow(),
        "progress": {},
        "is_displayed": True,
    }):
        logger.info("Badge %r already awarded to student %s", badge.name, student_id)
        return False  # Race condition: awarded concurrently

    await repo.add_student_points(student_id, badge.points)
    await repo.create_achievement_history({
        "student_id": student_id,
        "action": "badge_earned",
        "description": f"Earned badge: {badge.name}",
        "points": badge.points,
        "entry_metadata": {"badgeId": badge.id, "badgeName": badge.name, "eventType": event_type},
    })

    await publish_event(redis, BADGE_EARNED_CHANNEL, {
        "student_id": student_id,
        "badge_id": badge.id,
        "badge_name": badge.name,
        "rarity": badge.rarity,
        "points": badge.points,
    })
    logger.info("Student %s earned badge %r (+%d points)", student_id, badge.name, badge.points)
    return True


async def award_points(
    repo: AcademyRepository,
    student_id: int,
    event_type: str,
    event_data: dict[str, Any] | None = None,
) -> int:
    """Credit the points for an event and log it. Returns the amount awarded."""
    points = points_for_event(event_type, event_data)
    await repo.add_student_points(student_id, points)
    await repo.create_achievement_history({
        "student_id": student_id,
        "action": "points_awarded",
        "description": f"Earned {points} points for {event_type}",
        "points": points,
        "entry_metadata": {"eventType": event_type, "data": _jsonable(event_data or {})},
    })
    return points


async def update_level(
    repo: AcademyRepository,
    redis: object | None,
    student_id: int,
) -> int | None:
    """Recompute the level from experience points.

    Returns the new level when it went up, None otherwise. The level-up
    bonus is recorded in the history only; it is not credited to points.
    """
    points = await repo.get_student_points(student_id)
    if points is None:
        return None

    old_level = points.level
    new_level = compute_level(points.experience_points)
    if new_level <= old_level:
        return None

    await repo.update_student_level(student_id, new_level)
    await repo.create_achievement_history({
        "student_id": student_id,
        "action": "level_up",
        "description": f"Reached level {new_level}",
        "points": level_up_bonus(new_level),
        "entry_metadata": {"oldLevel": old_level, "newLevel": new_level},
    })

    await publish_event(redis, LEVEL_UP_CHANNEL, {
        "student_id": student_id,
        "old_level": old_level,
        "new_level": new_level,
    })
    logger.info("Student %s reached level %d", student_id, new_level)
    return new_level


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    """Round-trip through JSON so dates and decimals fit a JSON column."""
    return json.loads(json.dumps(data, default=str))

