"""users and trips with canonical episode trip index

Revision ID: 0001_users_and_trips
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_users_and_trips"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
CANONICAL_WHERE = "source_type = 'grenselos_episode'"


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("budget_per_day", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length(email) > 0", name="check_email_not_empty"),
    )
    op.create_index("idx_users_email", "users", ["email"])

    op.create_table(
        "trips",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("stops", JSON_TYPE, nullable=False),
        sa.Column("packing_list", JSON_TYPE, nullable=False),
        sa.Column("hotels", JSON_TYPE, nullable=False),
        sa.Column("experiences", JSON_TYPE, nullable=False),
        sa.Column("gallery", JSON_TYPE, nullable=False),
        sa.Column("source_type", sa.String(length=40), nullable=True),
        sa.Column("source_episode_id", sa.String(length=200), nullable=True),
        sa.Column("episode_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length(title) > 0", name="check_trip_title_not_empty"),
        sa.CheckConstraint(
            "source_type IS NULL OR source_type IN ('grenselos_episode', 'user_episode_trip', 'template')",
            name="check_trip_source_type",
        ),
    )
    op.create_index("idx_trips_user_id", "trips", ["user_id"])
    op.create_index("idx_trips_source_episode", "trips", ["source_episode_id"])
    op.create_index(
        "uq_trips_canonical_episode",
        "trips",
        ["user_id", "source_episode_id"],
        unique=True,
        postgresql_where=sa.text(CANONICAL_WHERE),
        sqlite_where=sa.text(CANONICAL_WHERE),
    )


def downgrade():
    op.drop_index("uq_trips_canonical_episode", table_name="trips")
    op.drop_index("idx_trips_source_episode", table_name="trips")
    op.drop_index("idx_trips_user_id", table_name="trips")
    op.drop_table("trips")
    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
