"""Notification tables: watchers, subscriptions, channels, prefs, inbox, comments, mentions.

Revision ID: 003_notification_tables
Revises: 002_gamification_tables
Create Date: 2026-03-05
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_notification_tables"
down_revision: str | None = "002_gamification_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS entity_watchers (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            entity_type VARCHAR(32) NOT NULL,
            entity_id VARCHAR(64) NOT NULL,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            watch_level VARCHAR(16) NOT NULL DEFAULT 'all'
                CHECK (watch_level IN ('all', 'mentions_only', 'muted')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_entity_watchers_entity_user UNIQUE (entity_type, entity_id, user_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS notification_subscriptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            event_type VARCHAR(64) NOT NULL,
            enabled BOOLEAN NOT NULL DEFAULT true,
            CONSTRAINT uq_notification_subscriptions_user_event UNIQUE (user_id, event_type)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS notification_channels (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(32) UNIQUE NOT NULL,
            name VARCHAR(64) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_notification_prefs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            channel_id UUID REFERENCES notification_channels(id),
            enabled BOOLEAN NOT NULL DEFAULT true,
            config JSONB NOT NULL DEFAULT '{}',
            quiet_hours_start TIME,
            quiet_hours_end TIME,
            quiet_days JSONB,
            timezone VARCHAR(64)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_user_notification_prefs_user
        ON user_notification_prefs(user_id)
    """)

    # --- Inbox ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            title VARCHAR(256) NOT NULL,
            body TEXT,
            source VARCHAR(64) NOT NULL,
            event_type VARCHAR(64),
            entity_type VARCHAR(32),
            entity_id VARCHAR(64),
            group_key VARCHAR(128),
            metadata JSONB NOT NULL DEFAULT '{}',
            read BOOLEAN NOT NULL DEFAULT false,
            sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user
        ON notifications(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_unread
        ON notifications(user_id)
        WHERE read = false
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_group_key
        ON notifications(group_key)
    """)

    # --- Comments / Mentions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS comments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            entity_type VARCHAR(32) NOT NULL,
            entity_id VARCHAR(64) NOT NULL,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            body TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_comments_entity
        ON comments(entity_type, entity_id, created_at)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS mentions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            comment_id UUID NOT NULL REFERENCES comments(id) ON DELETE CASCADE,
            mentioned_user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            entity_type VARCHAR(32) NOT NULL,
            entity_id VARCHAR(64) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS mentions CASCADE")
    op.execute("DROP TABLE IF EXISTS comments CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS user_notification_prefs CASCADE")
    op.execute("DROP TABLE IF EXISTS notification_channels CASCADE")
    op.execute("DROP TABLE IF EXISTS notification_subscriptions CASCADE")
    op.execute("DROP TABLE IF EXISTS entity_watchers CASCADE")
