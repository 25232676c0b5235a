"""Campaign read models and template-based creation."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from academy.campaigns.templates import build_campaign_from_template
from academy.db.models import Campaign, CampaignMessage
from academy.exceptions import NotFoundError
from academy.storage import AcademyRepository

# A delivered or read message was sent first
_SENT_STATUSES = frozenset({"sent", "delivered", "read"})


def _rate(numerator: int, denominator: int) -> int:
    return round(numerator / denominator * 100) if denominator else 0


def summarize_messages(messages: Iterable[CampaignMessage]) -> dict[str, int]:
    """Delivery funnel for a campaign, counted from its message rows."""
    sent = delivered = read = failed = 0
    for message in messages:
        if message.status in _SENT_STATUSES:
            sent += 1
        if message.status in ("delivered", "read"):
            delivered += 1
        if message.status == "read":
            read += 1
        if message.status == "failed":
            failed += 1
    return {
        "sent": sent,
        "delivered": delivered,
        "read": read,
        "failed": failed,
        "delivery_rate": _rate(delivered, sent),
        "read_rate": _rate(read, delivered),
    }


async def get_campaign_analytics(repo: AcademyRepository, campaign_id: int) -> dict[str, int]:
    if await repo.get_campaign(campaign_id) is None:
        raise NotFoundError(f"Campaign {campaign_id} not found")
    return summarize_messages(await repo.get_campaign_messages(campaign_id))


async def create_campaign_from_template(
    repo: AcademyRepository,
    key: str,
    overrides: dict[str, Any] | None = None,
) -> Campaign:
    """Create a campaign from a predefined template. Flushes; the caller commits."""
    try:
        data = build_campaign_from_template(key, overrides)
    except KeyError:
        raise NotFoundError(f"Unknown campaign template {key!r}") from None
    return await repo.create_campaign(data)
