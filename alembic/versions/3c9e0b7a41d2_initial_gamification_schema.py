"""Initial gamification schema

Revision ID: 3c9e0b7a41d2
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3c9e0b7a41d2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "gaming_stats",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("today_points", sa.Integer(), server_default="0"),
        sa.Column("combo", sa.Integer(), server_default="0"),
        sa.Column("all_day_complete", sa.Boolean(), server_default=sa.false()),
        sa.Column("last_active_date", sa.String(10), nullable=False),
        sa.Column("last_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("streak_count", sa.Integer(), server_default="0"),
        sa.Column("best_streak", sa.Integer(), server_default="0"),
        sa.Column("total_days_active", sa.Integer(), server_default="0"),
        sa.Column("level", sa.Integer(), server_default="1"),
        sa.Column("xp", sa.Integer(), server_default="0"),
        sa.Column("xp_to_next", sa.Integer(), server_default="100"),
        sa.Column("sound_enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("volume", sa.Integer(), server_default="75"),
        sa.Column("animations_enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", name="uq_gaming_stats_user"),
    )

    op.create_table(
        "daily_stats_history",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("points_earned", sa.Integer(), server_default="0"),
        sa.Column("tasks_completed", sa.Integer(), server_default="0"),
        sa.Column("max_combo", sa.Integer(), server_default="0"),
        sa.Column("all_day_completed", sa.Boolean(), server_default=sa.false()),
        sa.Column("xp_gained", sa.Integer(), server_default="0"),
        sa.Column("productivity_score", sa.Float(), server_default="0"),
        sa.Column("energy_level", sa.Integer(), server_default="5"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "date", name="uq_daily_history_user_date"),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("completed", sa.Boolean(), server_default=sa.false()),
        sa.Column("show_gratitude", sa.Boolean(), server_default=sa.false()),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tasks_user_completed", "tasks", ["user_id", "completed"])
    op.create_index("ix_tasks_user_due", "tasks", ["user_id", "due_date"])

    op.create_table(
        "achievement_history",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("achievement_id", sa.String(50), nullable=False),
        sa.Column("achievement_name", sa.String(200), nullable=False),
        sa.Column("achievement_icon", sa.String(20), nullable=True),
        sa.Column("points_awarded", sa.Integer(), server_default="0"),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "achievement_id", name="uq_achievement_history_user_achievement",
        ),
    )
    op.create_index(
        "ix_achievement_history_unlocked", "achievement_history", ["user_id", "unlocked_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_achievement_history_unlocked", table_name="achievement_history")
    op.drop_table("achievement_history")
    op.drop_index("ix_tasks_user_due", table_name="tasks")
    op.drop_index("ix_tasks_user_completed", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("daily_stats_history")
    op.drop_table("gaming_stats")
