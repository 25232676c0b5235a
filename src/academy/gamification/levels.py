"""Level computation from experience points."""

from __future__ import annotations

POINTS_PER_LEVEL = 1000
LEVEL_UP_BONUS_PER_LEVEL = 100


def compute_level(experience_points: int) -> int:
    """Level is a pure function of experience: one level per 1000 XP, starting at 1."""
    return max(experience_points, 0) // POINTS_PER_LEVEL + 1


def level_up_bonus(level: int) -> int:
    """Bonus recorded in the achievement history when ``level`` is reached."""
    return level * LEVEL_UP_BONUS_PER_LEVEL


def level_progress(experience_points: int) -> dict:
    """Level info for display: current level and progress toward the next one."""
    level = compute_level(experience_points)
    into_level = max(experience_points, 0) - (level - 1) * POINTS_PER_LEVEL
    return {
        "level": level,
        "points_into_level": into_level,
        "points_for_level": POINTS_PER_LEVEL,
        "next_level": level + 1,
    }
