from __future__ import annotations
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "20251027_0002"
down_revision = "20251020_0001"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.add_column("competitions", sa.Column("finalized_at", sa.TIMESTAMP(timezone=True), nullable=True))
    # Competitions already carrying results count as finalised
    op.execute("UPDATE competitions SET finalized_at = COALESCE(completed_at, now()) WHERE jsonb_typeof(final_rankings) = 'array'")

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("totals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("wins + losses = totals", name="ck_user_stats_totals"),
    )

def downgrade() -> None:
    op.drop_table("user_stats")
    op.drop_column("competitions", "finalized_at")
