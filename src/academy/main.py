"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from academy.campaigns.automation import CampaignAutomation
from academy.campaigns.dispatcher import CampaignDispatcher
from academy.campaigns.router import router as campaigns_router
from academy.config import Settings, get_settings
from academy.database import close_db, get_session_factory, init_db
from academy.gamification.router import router as gamification_router
from academy.gamification.service import GamificationService
from academy.health.router import router as health_router
from academy.middleware import setup_middleware
from academy.notifications.whatsapp import get_notifier
from academy.redis_client import close_redis, get_redis, init_redis

logger = structlog.get_logger()


def build_services(settings: Settings) -> tuple[GamificationService, CampaignAutomation]:
    """Wire the gamification service and campaign automation to the live DB and Redis."""
    session_factory = get_session_factory()
    redis = get_redis()
    gamification = GamificationService(session_factory, redis)
    dispatcher = CampaignDispatcher(
        session_factory,
        get_notifier(settings),
        redis,
        dedupe_per_day=settings.campaign_dedupe_per_day,
    )
    automation = CampaignAutomation(session_factory, dispatcher, settings)
    return gamification, automation


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    gamification, automation = build_services(settings)
    app.state.gamification = gamification
    app.state.automation = automation

    # Seed default badges (idempotent)
    if settings.seed_badges_on_startup:
        try:
            await gamification.initialize_default_badges()
        except Exception:
            logger.warning("badge_seeding_failed", exc_info=True)

    try:
        await automation.initialize_automation()
    except Exception:
        logger.error("campaign_automation_start_failed", exc_info=True)

    yield

    await automation.shutdown()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Academy Automation API",
        description="Campaign automation and gamification for a sports academy back-office",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(campaigns_router)
    app.include_router(gamification_router)

    return app


app = create_app()
