"""Campaign automation: one periodic asyncio task per active automated campaign.

Lifecycle per campaign id: uninstalled -> running -> stopped. ``install``
always stops an existing task first, so the registry never holds two
timers for the same campaign. Each tick opens its own session, reloads
the campaign and runs the rule matcher for ``automation_rules.type``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.campaigns.dispatcher import CampaignDispatcher
from academy.campaigns.rules import RULE_MATCHERS
from academy.config import Settings
from academy.db.models import Campaign
from academy.exceptions import InvalidCampaignError, NotFoundError
from academy.storage import AcademyRepository
from academy.time_utils import utcnow

logger = logging.getLogger(__name__)


def rule_type_of(campaign: Campaign) -> str | None:
    return (campaign.automation_rules or {}).get("type")


class CampaignAutomation:
    """Registry of running campaign timers keyed by campaign id."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: CampaignDispatcher,
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self.dispatcher = dispatcher
        self.settings = settings
        self._tasks: dict[int, asyncio.Task[None]] = {}
        self._inflight: set[asyncio.Task[int]] = set()

    @property
    def running_campaign_ids(self) -> list[int]:
        return sorted(cid for cid, task in self._tasks.items() if not task.done())

    def is_automatable(self, campaign: Campaign) -> bool:
        """Active, automated, and carrying a rule type we know how to schedule."""
        return (
            campaign.status == "active"
            and campaign.trigger == "automated"
            and rule_type_of(campaign) in RULE_MATCHERS
        )

    async def initialize_automation(self) -> int:
        """Install a timer for every active automated campaign. Returns how many were installed."""
        if not self.settings.automation_enabled:
            logger.info("Campaign automation disabled")
            return 0

        async with self._session_factory() as db:
            campaigns = await AcademyRepository(db).get_campaigns(status="active")

        installed = 0
        for campaign in campaigns:
            if campaign.trigger != "automated":
                continue
            if self.install(campaign):
                installed += 1
        logger.info("Campaign automation initialized: %d campaign(s) scheduled", installed)
        return installed

    def install(self, campaign: Campaign) -> bool:
        """Start the periodic task for ``campaign``, replacing any running one."""
        if not self.is_automatable(campaign):
            logger.warning(
                "Campaign %s is not automatable (status=%s trigger=%s rule=%s)",
                campaign.id, campaign.status, campaign.trigger, rule_type_of(campaign),
            )
            return False

        interval = self.settings.rule_interval_seconds(rule_type_of(campaign))
        self.stop(campaign.id)
        self._tasks[campaign.id] = asyncio.create_task(
            self._run_periodic(campaign.id, interval),
            name=f"campaign-{campaign.id}",
        )
        logger.info("Scheduled campaign %s (%s) every %ss", campaign.id, rule_type_of(campaign), interval)
        return True

    def stop(self, campaign_id: int) -> bool:
        """Cancel the campaign's timer. Safe to call when nothing is installed."""
        task = self._tasks.pop(campaign_id, None)
        if task is None:
            return False
        task.cancel()
        logger.info("Stopped automation for campaign %s", campaign_id)
        return True

    async def restart(self, campaign_id: int) -> bool:
        """Stop, reload and reinstall if the campaign is still active and automated."""
        self.stop(campaign_id)
        if not self.settings.automation_enabled:
            return False
        async with self._session_factory() as db:
            campaign = await AcademyRepository(db).get_campaign(campaign_id)
        if campaign is None or not self.is_automatable(campaign):
            return False
        return self.install(campaign)

    async def run_once(self, campaign_id: int) -> int:
        """Run one tick of the campaign's rule now. Returns the number of matched recipients."""
        async with self._session_factory() as db:
            repo = AcademyRepository(db)
            campaign = await repo.get_campaign(campaign_id)
            if campaign is None:
                raise NotFoundError(f"Campaign {campaign_id} not found")
            if rule_type_of(campaign) not in RULE_MATCHERS:
                raise InvalidCampaignError(
                    f"Campaign {campaign_id} has no runnable automation rule: {rule_type_of(campaign)!r}"
                )
            return await self._execute(repo, campaign, utcnow())

    async def shutdown(self) -> None:
        """Cancel every timer and wait for ticks already in progress."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        logger.info("Campaign automation stopped")

    async def _run_periodic(self, campaign_id: int, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            # A cancel during the tick stops the timer but lets the pass finish
            tick = asyncio.ensure_future(self._tick(campaign_id))
            self._inflight.add(tick)
            tick.add_done_callback(self._inflight.discard)
            await asyncio.shield(tick)

    async def _tick(self, campaign_id: int) -> int:
        try:
            async with self._session_factory() as db:
                repo = AcademyRepository(db)
                campaign = await repo.get_campaign(campaign_id)
                if campaign is None or not self.is_automatable(campaign):
                    logger.info("Campaign %s no longer automatable, skipping tick", campaign_id)
                    return 0
                return await self._execute(repo, campaign, utcnow())
        except Exception:
            logger.exception("Campaign %s tick failed", campaign_id)
            return 0

    async def _execute(self, repo: AcademyRepository, campaign: Campaign, now: datetime) -> int:
        rules = campaign.automation_rules or {}
        matcher = RULE_MATCHERS[rules["type"]]
        matched = 0
        async for match in matcher(repo, rules.get("conditions") or {}, now):
            matched += 1
            await self.dispatcher.send(campaign, match.student, match.variables, now=now)
        logger.info("Campaign %s (%s) matched %d recipient(s)", campaign.id, rules["type"], matched)
        return matched
