"""Onboarding tables: questions, per-household state, responses and observations.

Revision ID: 004_onboarding_tables
Revises: 003_notification_tables
Create Date: 2026-03-09
"""

from collections.abc import Sequence

from alembic import op

revision: str = "004_onboarding_tables"
down_revision: str | None = "003_notification_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS onboarding_questions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            question_key VARCHAR(64) UNIQUE NOT NULL,
            question_text TEXT NOT NULL,
            category VARCHAR(32) NOT NULL DEFAULT 'general',
            phase VARCHAR(16) NOT NULL DEFAULT 'interview',
            sort_order INTEGER NOT NULL DEFAULT 0,
            active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS onboarding_state (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            household_id UUID NOT NULL REFERENCES households(id) ON DELETE CASCADE,
            current_phase VARCHAR(16) NOT NULL DEFAULT 'not_started'
                CHECK (current_phase IN ('not_started', 'interview', 'observation', 'refinement', 'active')),
            current_question_index INTEGER NOT NULL DEFAULT 0,
            track VARCHAR(8) NOT NULL DEFAULT 'full' CHECK (track IN ('full', 'quick')),
            interview_completed_at TIMESTAMPTZ,
            observation_started_at TIMESTAMPTZ,
            observation_ends_at TIMESTAMPTZ,
            refinement_completed_at TIMESTAMPTZ,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_onboarding_state_user_household UNIQUE (user_id, household_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS onboarding_responses (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            onboarding_id UUID NOT NULL REFERENCES onboarding_state(id) ON DELETE CASCADE,
            question_key VARCHAR(64) NOT NULL,
            question_text TEXT,
            raw_response TEXT NOT NULL,
            phase VARCHAR(16) NOT NULL DEFAULT 'interview',
            channel VARCHAR(16) NOT NULL DEFAULT 'web',
            extracted_data JSONB NOT NULL DEFAULT '{}',
            confidence DOUBLE PRECISION,
            reviewed_by_user BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_onboarding_responses_onboarding_question UNIQUE (onboarding_id, question_key)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS ai_observations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            household_id UUID REFERENCES households(id) ON DELETE CASCADE,
            observation_type VARCHAR(32) NOT NULL,
            content TEXT NOT NULL,
            confidence DOUBLE PRECISION NOT NULL,
            source_layer VARCHAR(16) NOT NULL,
            source_data JSONB NOT NULL DEFAULT '{}',
            tags JSONB NOT NULL DEFAULT '[]',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_ai_observations_user
        ON ai_observations(user_id, created_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ai_observations CASCADE")
    op.execute("DROP TABLE IF EXISTS onboarding_responses CASCADE")
    op.execute("DROP TABLE IF EXISTS onboarding_state CASCADE")
    op.execute("DROP TABLE IF EXISTS onboarding_questions CASCADE")
