"""Pydantic request/response models for notification endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime, time
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

DISCORD_WEBHOOK_PREFIXES = ("https://discord.com/api/webhooks/", "https://discordapp.com/api/webhooks/")


class NotificationResponse(BaseModel):
    id: uuid.UUID
    title: str
    body: str | None = None
    source: str
    event_type: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    group_key: str | None = None
    metadata: dict[str, Any] = {}
    read: bool
    sent_at: datetime | None = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int
    unread: int


class UnreadCountResponse(BaseModel):
    unread: int


class SubscriptionsResponse(BaseModel):
    subscriptions: dict[str, bool]


class SubscriptionsUpdateRequest(BaseModel):
    subscriptions: dict[str, bool] = Field(min_length=1)


class QuietHoursBody(BaseModel):
    start: time | None = None
    end: time | None = None
    days: list[int] = []
    timezone: str | None = None

    @field_validator("days")
    @classmethod
    def check_days(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            msg = "days must be 0 (Sunday) to 6 (Saturday)"
            raise ValueError(msg)
        return v

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v


class ChannelPreferenceBody(BaseModel):
    slug: str
    enabled: bool = True
    webhook_url: str | None = None

    @field_validator("webhook_url")
    @classmethod
    def check_webhook(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(DISCORD_WEBHOOK_PREFIXES):
            msg = "webhook_url must be a Discord webhook URL"
            raise ValueError(msg)
        return v


class ChannelPreferenceResponse(BaseModel):
    slug: str
    name: str
    enabled: bool
    configured: bool


class PreferencesResponse(BaseModel):
    channels: list[ChannelPreferenceResponse]
    quiet_hours: QuietHoursBody | None = None


class PreferencesUpdateRequest(BaseModel):
    quiet_hours: QuietHoursBody | None = None
    channel: ChannelPreferenceBody | None = None


class WatchRequest(BaseModel):
    watch_level: str = Field(default="all", pattern="^(all|mentions_only|muted)$")


class WatchResponse(BaseModel):
    entity_type: str
    entity_id: str
    watch_level: str | None = None
    watchers: int = 0
