"""Per-user write sequence on xp_ledger.

Existing rows are numbered by (created_at, id) within each user.

Revision ID: 005_xp_ledger_seq
Revises: 004_onboarding_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "005_xp_ledger_seq"
down_revision: str | None = "004_onboarding_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE xp_ledger ADD COLUMN IF NOT EXISTS seq INTEGER")
    op.execute("""
        UPDATE xp_ledger AS l
        SET seq = numbered.rn
        FROM (
            SELECT id, ROW_NUMBER() OVER (PARTITION BY user_id ORDER BY created_at, id) AS rn
            FROM xp_ledger
        ) AS numbered
        WHERE l.id = numbered.id AND l.seq IS NULL
    """)
    # New rows take the profile version, which must stay ahead of the backfill
    op.execute("""
        UPDATE crawler_profiles AS p
        SET version = counts.n
        FROM (SELECT user_id, COUNT(*) AS n FROM xp_ledger GROUP BY user_id) AS counts
        WHERE p.user_id = counts.user_id AND p.version < counts.n
    """)
    op.execute("ALTER TABLE xp_ledger ALTER COLUMN seq SET NOT NULL")
    op.execute("""
        ALTER TABLE xp_ledger
        ADD CONSTRAINT uq_xp_ledger_user_seq UNIQUE (user_id, seq)
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE xp_ledger DROP CONSTRAINT IF EXISTS uq_xp_ledger_user_seq")
    op.execute("ALTER TABLE xp_ledger DROP COLUMN IF EXISTS seq")
