"""Publish achievement and campaign events over Redis pub/sub for realtime dashboards."""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

BADGE_EARNED_CHANNEL = "pubsub:badge_earned"
LEVEL_UP_CHANNEL = "pubsub:level_up"
CAMPAIGN_MESSAGE_CHANNEL = "pubsub:campaign_message"


async def publish_event(redis: object | None, channel: str, payload: dict[str, Any]) -> None:
    """Publish ``payload`` as JSON. No-op without Redis; failures are logged, never raised."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[union-attr]
    except Exception:
        logger.warning("Failed to publish %s event", channel, exc_info=True)
