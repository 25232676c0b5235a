"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata, so no external services are needed.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.campaigns.automation import CampaignAutomation
from academy.campaigns.dispatcher import CampaignDispatcher
from academy.config import Settings, get_settings
from academy.database import close_db, create_all, get_session_factory, init_db
from academy.db.models import Attendance, Batch, Campaign, Payment, Sport, Student
from academy.exceptions import NotificationError
from academy.gamification.service import GamificationService
from academy.notifications.whatsapp import BaseNotifier, NotificationResult
from academy.time_utils import utcnow

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeNotifier(BaseNotifier):
    """Records every send.

    Phones in ``fail_for`` raise NotificationError; phones in ``reject_for``
    get an unsuccessful result back.
    """

    def __init__(self, fail_for: set[str] | None = None, reject_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.reject_for = reject_for or set()
        self.sent: list[dict[str, str]] = []

    async def send(self, to: str, message: str, type: str = "general") -> NotificationResult:  # noqa: A002
        if to in self.fail_for:
            raise NotificationError(f"WhatsApp API error: cannot reach {to}")
        if to in self.reject_for:
            return {"success": False, "message_id": ""}
        self.sent.append({"to": to, "message": message, "type": type})
        return {"success": True, "message_id": f"wamid.{len(self.sent)}"}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        redis_url="",
        log_format="console",
        notifier_provider="log",
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory schema per test."""
    await init_db(TEST_DATABASE_URL)
    await create_all()
    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for arranging data and asserting on it."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_notifier() -> Callable[..., FakeNotifier]:
    return FakeNotifier


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def redis_mock() -> AsyncMock:
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def dispatcher(session_factory, notifier) -> CampaignDispatcher:
    return CampaignDispatcher(session_factory, notifier)


@pytest_asyncio.fixture
async def automation(session_factory, dispatcher, settings) -> AsyncGenerator[CampaignAutomation, None]:
    registry = CampaignAutomation(session_factory, dispatcher, settings)
    yield registry
    await registry.shutdown()


@pytest.fixture
def gamification(session_factory, redis_mock) -> GamificationService:
    return GamificationService(session_factory, redis_mock)


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_student(db_session) -> Callable[..., Awaitable[Student]]:
    counter = {"n": 0}

    async def _make(**overrides: Any) -> Student:
        counter["n"] += 1
        n = counter["n"]
        data: dict[str, Any] = {
            "student_code": f"STU{n:04d}",
            "name": f"Student {n}",
            "phone": f"+91 98765 {n:05d}",
            "skill_level": "beginner",
            "joining_date": utcnow() - timedelta(days=60),
        }
        data.update(overrides)
        student = Student(**data)
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student

    return _make


@pytest.fixture
def make_sport_batch(db_session) -> Callable[..., Awaitable[tuple[Sport, Batch]]]:
    async def _make(sport_name: str = "Cricket", batch_name: str = "Morning Juniors") -> tuple[Sport, Batch]:
        sport = Sport(name=sport_name)
        db_session.add(sport)
        await db_session.flush()
        batch = Batch(name=batch_name, sport_id=sport.id)
        db_session.add(batch)
        await db_session.commit()
        return sport, batch

    return _make


@pytest.fixture
def add_attendance(db_session) -> Callable[..., Awaitable[None]]:
    async def _add(student_id: int, statuses: list[str], last_day: date | None = None) -> None:
        """Insert one record per status, oldest first, ending on ``last_day``."""
        last_day = last_day or utcnow().date()
        first_day = last_day - timedelta(days=len(statuses) - 1)
        for offset, status in enumerate(statuses):
            db_session.add(Attendance(
                student_id=student_id,
                attended_on=first_day + timedelta(days=offset),
                status=status,
            ))
        await db_session.commit()

    return _add


@pytest.fixture
def add_payment(db_session) -> Callable[..., Awaitable[Payment]]:
    async def _add(student_id: int, **overrides: Any) -> Payment:
        data: dict[str, Any] = {
            "student_id": student_id,
            "amount": Decimal("1500.00"),
            "status": "pending",
            "due_date": utcnow() + timedelta(days=2),
        }
        data.update(overrides)
        payment = Payment(**data)
        db_session.add(payment)
        await db_session.commit()
        return payment

    return _add


@pytest.fixture
def make_campaign(db_session) -> Callable[..., Awaitable[Campaign]]:
    async def _make(**overrides: Any) -> Campaign:
        data: dict[str, Any] = {
            "name": "Fee reminders",
            "type": "fee_reminder",
            "status": "active",
            "trigger": "automated",
            "message_template": {"text": "Hi {studentName}, Rs.{amount} is due on {dueDate}."},
            "automation_rules": {"type": "fee_reminder", "conditions": {"daysBefore": 3}, "actions": {}},
        }
        data.update(overrides)
        campaign = Campaign(**data)
        db_session.add(campaign)
        await db_session.commit()
        return campaign

    return _make


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory, settings, notifier, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, with services wired to the test database."""
    monkeypatch.setenv("ACADEMY_DATABASE_URL", TEST_DATABASE_URL)
    monkeypatch.setenv("ACADEMY_REDIS_URL", "")
    get_settings.cache_clear()

    from academy.main import create_app

    app = create_app()
    dispatcher = CampaignDispatcher(session_factory, notifier)
    registry = CampaignAutomation(session_factory, dispatcher, settings)
    app.state.gamification = GamificationService(session_factory)
    app.state.automation = registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await registry.shutdown()
    get_settings.cache_clear()