from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20251020_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "competitions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("starts_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("daily_cap", sa.Float(), nullable=True),
        sa.Column("leaderboard_update_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rules_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("photo_proof_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("winner_id", sa.String(length=128), nullable=True),
        sa.Column("winner_points", sa.Float(), nullable=True),
        sa.Column("final_rankings", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("ends_at > starts_at", name="ck_competition_window"),
        sa.CheckConstraint("leaderboard_update_days >= 0", name="ck_competition_update_days"),
    )
    op.create_index("ix_competitions_owner_id", "competitions", ["owner_id"])

    op.create_table(
        "participants",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("competition_id", sa.Uuid(), sa.ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("display_name", sa.String(length=80), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("competition_id", "user_id", name="uq_participant_per_competition"),
    )
    op.create_index("ix_participants_competition_id", "participants", ["competition_id"])
    op.create_index("ix_participants_user_id", "participants", ["user_id"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("competition_id", sa.Uuid(), sa.ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("activity_type", sa.String(length=80), nullable=False),
        sa.Column("unit", sa.String(length=40), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False, server_default="0"),
        sa.Column("distance", sa.Float(), nullable=False, server_default="0"),
        sa.Column("calories", sa.Float(), nullable=False, server_default="0"),
        sa.Column("sessions", sa.Float(), nullable=False, server_default="0"),
        sa.Column("reps", sa.Float(), nullable=False, server_default="0"),
        sa.Column("sets", sa.Float(), nullable=False, server_default="0"),
        sa.Column("steps", sa.Float(), nullable=False, server_default="0"),
        sa.Column("custom_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("pace", sa.Float(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("raw_points", sa.Float(), nullable=False, server_default="0"),
        sa.Column("points", sa.Float(), nullable=False, server_default="0"),
        sa.Column("capped_by", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_submission_points_non_negative"),
        sa.CheckConstraint("points <= raw_points", name="ck_submission_points_capped"),
    )
    op.create_index("ix_submissions_competition_id", "submissions", ["competition_id"])
    op.create_index("ix_submissions_user_id", "submissions", ["user_id"])
    op.create_index("ix_submissions_date", "submissions", ["date"])

def downgrade() -> None:
    op.drop_index("ix_submissions_date", table_name="submissions")
    op.drop_index("ix_submissions_user_id", table_name="submissions")
    op.drop_index("ix_submissions_competition_id", table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("ix_participants_user_id", table_name="participants")
    op.drop_index("ix_participants_competition_id", table_name="participants")
    op.drop_table("participants")
    op.drop_index("ix_competitions_owner_id", table_name="competitions")
    op.drop_table("competitions")
