"""Gamification tables.

Creates floors, loot_box_tiers, xp_actions, achievements, crawler_profiles,
xp_ledger, achievement_unlocks, loot_box_rewards and loot_boxes.
Reference rows are seeded by the application on startup.

Revision ID: 002_gamification_tables
Revises: 001_baseline
Create Date: 2026-03-02
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_gamification_tables"
down_revision: str | None = "001_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Reference data ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS floors (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            floor_number INTEGER UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            min_level INTEGER NOT NULL,
            max_level INTEGER NOT NULL,
            icon VARCHAR(16),
            color VARCHAR(16),
            unlock_message TEXT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS loot_box_tiers (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(32) UNIQUE NOT NULL,
            name VARCHAR(64) NOT NULL,
            description TEXT,
            color VARCHAR(16),
            icon VARCHAR(16),
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_actions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            base_xp INTEGER NOT NULL,
            description TEXT
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            category VARCHAR(32) NOT NULL,
            tier VARCHAR(16) NOT NULL DEFAULT 'common',
            xp_reward INTEGER NOT NULL DEFAULT 0,
            icon VARCHAR(16),
            loot_box_tier VARCHAR(32),
            trigger_type VARCHAR(32) NOT NULL,
            trigger_config JSONB NOT NULL DEFAULT '{}',
            is_hidden BOOLEAN NOT NULL DEFAULT false,
            is_party BOOLEAN NOT NULL DEFAULT false,
            is_repeatable BOOLEAN NOT NULL DEFAULT false,
            active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievements_trigger_active
        ON achievements(trigger_type)
        WHERE active = true
    """)

    # --- Crawler Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS crawler_profiles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            crawler_name VARCHAR(128) NOT NULL DEFAULT 'Unknown Crawler',
            title VARCHAR(128),
            current_floor_id UUID REFERENCES floors(id),
            total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            current_level INTEGER NOT NULL DEFAULT 1,
            xp_to_next_level INTEGER NOT NULL DEFAULT 100,
            login_streak INTEGER NOT NULL DEFAULT 0,
            longest_login_streak INTEGER NOT NULL DEFAULT 0,
            last_login_date DATE,
            showcase_achievement_ids JSONB NOT NULL DEFAULT '[]',
            version INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- XP Ledger (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_ledger (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            action_type VARCHAR(64) NOT NULL,
            source_entity_type VARCHAR(32),
            source_entity_id VARCHAR(64),
            description VARCHAR(256),
            multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_ledger_user_time
        ON xp_ledger(user_id, created_at DESC)
    """)

    # --- Achievement Unlocks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_unlocks (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id UUID NOT NULL REFERENCES achievements(id),
            xp_awarded INTEGER NOT NULL DEFAULT 0,
            unlock_count INTEGER NOT NULL DEFAULT 1,
            metadata JSONB NOT NULL DEFAULT '{}',
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_achievement_unlocks_user_achievement_count
                UNIQUE (user_id, achievement_id, unlock_count)
        )
    """)

    # --- Loot Boxes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS loot_box_rewards (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            household_id UUID REFERENCES households(id) ON DELETE CASCADE,
            tier_id UUID NOT NULL REFERENCES loot_box_tiers(id),
            name VARCHAR(128) NOT NULL,
            description TEXT,
            icon VARCHAR(16),
            is_household BOOLEAN NOT NULL DEFAULT false,
            active BOOLEAN NOT NULL DEFAULT true,
            times_won INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS loot_boxes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            tier_id UUID NOT NULL REFERENCES loot_box_tiers(id),
            source_achievement_id UUID REFERENCES achievements(id),
            source_description VARCHAR(256),
            opened BOOLEAN NOT NULL DEFAULT false,
            opened_at TIMESTAMPTZ,
            reward_id UUID REFERENCES loot_box_rewards(id),
            reward_redeemed BOOLEAN NOT NULL DEFAULT false,
            redeemed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_loot_boxes_unopened
        ON loot_boxes(user_id)
        WHERE opened = false
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS loot_boxes CASCADE")
    op.execute("DROP TABLE IF EXISTS loot_box_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS achievement_unlocks CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS crawler_profiles CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_actions CASCADE")
    op.execute("DROP TABLE IF EXISTS loot_box_tiers CASCADE")
    op.execute("DROP TABLE IF EXISTS floors CASCADE")
