"""Campaign dispatcher: render, record, send and count one campaign message."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.campaigns.message_template import render
from academy.db.models import Campaign, CampaignMessage, Student
from academy.exceptions import NotificationError
from academy.notifications.whatsapp import BaseNotifier
from academy.realtime import CAMPAIGN_MESSAGE_CHANNEL, publish_event
from academy.storage import AcademyRepository
from academy.time_utils import start_of_day, utcnow

logger = logging.getLogger(__name__)


class CampaignDispatcher:
    """Sends one templated message per call.

    Each send runs in its own session: the message row is committed as
    ``pending`` before the notifier is called, then marked ``sent`` or
    ``failed`` and counted in the campaign analytics. A failure for one
    recipient is logged and swallowed so the caller can move on.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: BaseNotifier,
        redis: object | None = None,
        dedupe_per_day: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self.notifier = notifier
        self.redis = redis
        self.dedupe_per_day = dedupe_per_day

    async def send(
        self,
        campaign: Campaign,
        student: Student,
        variables: dict[str, Any],
        now: datetime | None = None,
    ) -> CampaignMessage | None:
        """Dispatch to one student. Returns the message row, or None if skipped or broken."""
        now = now or utcnow()
        campaign_id = campaign.id
        student_id = student.id
        try:
            content = render((campaign.message_template or {}).get("text", ""), variables)
            async with self._session_factory() as db:
                repo = AcademyRepository(db)
                if self.dedupe_per_day and await repo.has_sent_campaign_message_since(
                    campaign_id, student_id, start_of_day(now)
                ):
                    logger.info("Campaign %s already messaged student %s today", campaign_id, student_id)
                    return None

                message = await repo.create_campaign_message({
                    "campaign_id": campaign_id,
                    "recipient": student.phone,
                    "student_id": student_id,
                    "message_content": content,
                    "status": "pending",
                    "created_at": now,
                })
                await db.commit()

                try:
                    result = await self.notifier.send(to=student.phone, message=content, type="general")
                    if not result.get("success"):
                        raise NotificationError("Notifier reported an unsuccessful send")
                except Exception as exc:
                    logger.warning(
                        "Campaign %s message to student %s failed: %s", campaign_id, student_id, exc
                    )
                    await repo.update_campaign_message(message.id, {
                        "status": "failed",
                        "error_message": str(exc),
                    })
                    await self._count(repo, campaign_id, "failed")
                    await db.commit()
                    return message

                await repo.update_campaign_message(message.id, {
                    "status": "sent",
                    "sent_at": now,
                    "provider_message_id": result.get("message_id"),
                })
                await self._count(repo, campaign_id, "sent", last_run_at=now)
                await db.commit()
        except Exception:
            logger.exception("Dispatch of campaign %s to student %s aborted", campaign_id, student_id)
            return None

        await publish_event(self.redis, CAMPAIGN_MESSAGE_CHANNEL, {
            "campaign_id": campaign_id,
            "student_id": student_id,
            "message_id": message.id,
            "status": message.status,
        })
        return message

    @staticmethod
    async def _count(
        repo: AcademyRepository,
        campaign_id: int,
        counter: str,
        last_run_at: datetime | None = None,
    ) -> None:
        fresh = await repo.get_campaign(campaign_id)
        if fresh is None:
            return
        analytics = dict(fresh.analytics or {})
        analytics[counter] = int(analytics.get(counter, 0)) + 1
        updates: dict[str, Any] = {"analytics": analytics}
        if last_run_at is not None:
            updates["last_run_at"] = last_run_at
        await repo.update_campaign(campaign_id, updates)
