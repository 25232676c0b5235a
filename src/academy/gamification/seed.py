"""Default badge set, seeded once at startup."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.storage import AcademyRepository

logger = logging.getLogger(__name__)

DEFAULT_BADGES: list[dict] = [
    # Attendance
    {
        "name": "Perfect Attendance",
        "description": "Attend all classes for 30 consecutive days",
        "icon": "trophy",
        "color": "gold",
        "category": "attendance",
        "requirement": {"type": "attendance", "operator": "streak", "value": 30, "timeframe": "daily"},
        "points": 500,
        "rarity": "legendary",
    },
    {
        "name": "Early Bird",
        "description": "Be punctual for 10 consecutive classes",
        "icon": "clock",
        "color": "blue",
        "category": "attendance",
        "requirement": {"type": "attendance", "operator": "streak", "value": 10, "timeframe": "daily"},
        "points": 200,
        "rarity": "epic",
    },
    {
        "name": "Attendance Champion",
        "description": "Achieve 95% attendance this month",
        "icon": "star",
        "color": "green",
        "category": "attendance",
        "requirement": {"type": "attendance", "operator": "greater", "value": 95, "timeframe": "monthly"},
        "points": 300,
        "rarity": "rare",
    },
    # Payment
    {
        "name": "Prompt Payer",
        "description": "Pay fees on time for 6 consecutive months",
        "icon": "credit-card",
        "color": "emerald",
        "category": "payment",
        "requirement": {"type": "payment", "operator": "streak", "value": 6, "timeframe": "monthly"},
        "points": 400,
        "rarity": "epic",
    },
    {
        "name": "Financial Responsibility",
        "description": "Never miss a payment deadline",
        "icon": "wallet",
        "color": "purple",
        "category": "payment",
        "requirement": {"type": "payment", "operator": "equals", "value": 0, "timeframe": "all_time"},
        "points": 600,
        "rarity": "legendary",
    },
    # Performance
    {
        "name": "Skill Master",
        "description": "Achieve advanced skill level in your sport",
        "icon": "award",
        "color": "orange",
        "category": "performance",
        "requirement": {"type": "performance", "operator": "equals", "value": 5, "timeframe": "all_time"},
        "points": 750,
        "rarity": "legendary",
    },
    {
        "name": "Rising Star",
        "description": "Show consistent improvement over 3 months",
        "icon": "trending-up",
        "color": "yellow",
        "category": "performance",
        "requirement": {"type": "performance", "operator": "greater", "value": 3, "timeframe": "monthly"},
        "points": 250,
        "rarity": "rare",
    },
    # Milestones
    {
        "name": "Loyal Student",
        "description": "Complete 1 year of training",
        "icon": "heart",
        "color": "red",
        "category": "milestone",
        "requirement": {"type": "milestone", "operator": "greater", "value": 365, "timeframe": "all_time"},
        "points": 1000,
        "rarity": "legendary",
    },
    {
        "name": "Dedicated Learner",
        "description": "Complete 100 training sessions",
        "icon": "book",
        "color": "indigo",
        "category": "milestone",
        "requirement": {"type": "milestone", "operator": "greater", "value": 100, "timeframe": "all_time"},
        "points": 500,
        "rarity": "epic",
    },
    {
        "name": "Newcomer",
        "description": "Complete your first week of training",
        "icon": "user-plus",
        "color": "cyan",
        "category": "milestone",
        "requirement": {"type": "milestone", "operator": "greater", "value": 7, "timeframe": "all_time"},
        "points": 50,
        "rarity": "common",
    },
]


async def seed_badges(db: AsyncSession) -> int:
    """Create any default badge that does not exist yet. Returns the number created.

    Each badge commits on its own; a concurrent seeder that wins the race
    on the unique name makes our insert fail, which is ignored.
    """
    repo = AcademyRepository(db)
    created = 0
    for data in DEFAULT_BADGES:
        if await repo.get_badge_by_name(data["name"]) is not None:
            continue
        try:
            await repo.create_badge(dict(data, requirement=dict(data["requirement"])))
            await db.commit()
            created += 1
        except IntegrityError:
            await db.rollback()
            logger.info("Badge %r already created by another seeder", data["name"])

    if created:
        logger.info("Seeded %d default badges", created)
    return created
