"""Discord webhook delivery for external notification channels."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from desperado.config import get_settings

logger = structlog.get_logger()

DEFAULT_COLOR = 0x64748B
DEFAULT_EMOJI = "\U0001f514"  # bell

EVENT_COLORS: dict[str, int] = {
    "task_assigned": 0x3B82F6,
    "task_commented": 0x8B5CF6,
    "task_overdue": 0xEF4444,
    "task_completed": 0x22C55E,
    "task_handed_off": 0xF97316,
    "goal_commented": 0x8B5CF6,
    "goal_completed": 0x22C55E,
    "habit_commented": 0x8B5CF6,
    "mention": 0xEAB308,
    "checklist_complete": 0x06B6D4,
    "recurrence_created": 0xEAB308,
    "system": 0x64748B,
}

EVENT_EMOJI: dict[str, str] = {
    "task_assigned": "\U0001f464",
    "task_commented": "\U0001f4ac",
    "task_overdue": "⏰",
    "task_completed": "✅",
    "task_handed_off": "\U0001f504",
    "goal_commented": "\U0001f4ac",
    "goal_completed": "\U0001f3af",
    "goal_milestone_completed": "\U0001f3c6",
    "habit_commented": "\U0001f4ac",
    "habit_streak_milestone": "\U0001f525",
    "mention": "\U0001f4e3",
    "checklist_complete": "☑️",
    "recurrence_created": "\U0001f501",
    "system": DEFAULT_EMOJI,
}


def build_discord_embed(title: str, body: str | None, event: str, now: datetime | None = None) -> dict[str, Any]:
    """Build the webhook payload: a single embed with per-event colour and emoji."""
    now = now or datetime.now(timezone.utc)
    embed: dict[str, Any] = {
        "title": f"{EVENT_EMOJI.get(event, DEFAULT_EMOJI)} {title}",
        "color": EVENT_COLORS.get(event, DEFAULT_COLOR),
        "timestamp": now.isoformat(),
        "footer": {"text": get_settings().discord_footer_text},
    }
    if body:
        embed["description"] = body
    return {"embeds": [embed]}


async def send_discord_webhook(
    webhook_url: str,
    payload: dict[str, Any],
    client: httpx.AsyncClient | None = None,
) -> bool:
    """POST an embed payload. Failures are logged and reported as False, never raised."""
    timeout = get_settings().discord_timeout_seconds
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.post(webhook_url, json=payload)
        else:
            response = await client.post(webhook_url, json=payload, timeout=timeout)
    except httpx.HTTPError as exc:
        logger.warning("discord_webhook_error", error=str(exc))
        return False

    if response.is_error:
        logger.warning("discord_webhook_failed", status=response.status_code)
        return False
    logger.info("discord_webhook_sent", status=response.status_code)
    return True
