"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Request

from academy.campaigns.automation import CampaignAutomation
from academy.database import get_session as _get_session
from academy.gamification.service import GamificationService
from academy.redis_client import get_redis as _get_redis

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client (or None when disabled) as a FastAPI dependency."""
    yield _get_redis()


def get_automation(request: Request) -> CampaignAutomation:
    """The campaign automation registry started in the app lifespan."""
    return request.app.state.automation


def get_gamification(request: Request) -> GamificationService:
    return request.app.state.gamification
