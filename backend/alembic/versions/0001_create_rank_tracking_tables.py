"""Create rank tracking tables and seed default run configuration.

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DEFAULT_CONFIG = {
    "serp_country": "us",
    "serp_language": "en",
    "alert_threshold": "3",
    "auto_discovery_enabled": "true",
    "auto_discovery_min_impressions": "100",
    "max_keywords_per_url": "10",
    "archive_weeks": "13",
}


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Create tracked_urls, notes, keywords, weekly_snapshots, alerts, config_entries."""
    op.create_table(
        "tracked_urls",
        _uuid_pk(),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column(
            "status",
            sa.String(length=50),
            server_default=sa.text("'active'"),
            nullable=False,
        ),
        sa.Column(
            "priority",
            sa.String(length=50),
            server_default=sa.text("'medium'"),
            nullable=False,
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_tracked_urls_url"),
    )
    op.create_index(op.f("ix_tracked_urls_status"), "tracked_urls", ["status"], unique=False)

    op.create_table(
        "notes",
        _uuid_pk(),
        sa.Column("url_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["url_id"], ["tracked_urls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_notes_url_id"), "notes", ["url_id"], unique=False)

    op.create_table(
        "keywords",
        _uuid_pk(),
        sa.Column("url_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("keyword", sa.String(length=500), nullable=False),
        sa.Column(
            "source",
            sa.String(length=20),
            server_default=sa.text("'manual'"),
            nullable=False,
        ),
        sa.Column(
            "intent",
            sa.String(length=20),
            server_default=sa.text("'informational'"),
            nullable=False,
        ),
        sa.Column("tracked", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["url_id"], ["tracked_urls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url_id", "keyword", name="uq_keywords_url_keyword"),
    )
    op.create_index(op.f("ix_keywords_url_id"), "keywords", ["url_id"], unique=False)

    op.create_table(
        "weekly_snapshots",
        _uuid_pk(),
        sa.Column("keyword_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("week_starting", sa.Date(), nullable=False),
        sa.Column("gsc_position", sa.Float(), nullable=True),
        sa.Column("gsc_clicks", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("gsc_impressions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("gsc_ctr", sa.Float(), nullable=True),
        sa.Column("serp_position", sa.Integer(), nullable=True),
        sa.Column("serp_features", sa.String(length=500), nullable=True),
        sa.Column("prev_position", sa.Integer(), nullable=True),
        sa.Column("position_change", sa.Integer(), server_default=sa.text("0"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["keyword_id"], ["keywords.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "keyword_id", "week_starting", name="uq_weekly_snapshots_keyword_week"
        ),
    )
    op.create_index(
        op.f("ix_weekly_snapshots_keyword_id"), "weekly_snapshots", ["keyword_id"], unique=False
    )
    op.create_index(
        op.f("ix_weekly_snapshots_week_starting"),
        "weekly_snapshots",
        ["week_starting"],
        unique=False,
    )

    op.create_table(
        "alerts",
        _uuid_pk(),
        sa.Column("keyword_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.String(length=20),
            server_default=sa.text("'open'"),
            nullable=False,
        ),
        sa.Column("action", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["keyword_id"], ["keywords.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_alerts_keyword_id"), "alerts", ["keyword_id"], unique=False)
    op.create_index(op.f("ix_alerts_severity"), "alerts", ["severity"], unique=False)
    op.create_index(op.f("ix_alerts_status"), "alerts", ["status"], unique=False)

    config_entries = op.create_table(
        "config_entries",
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("key"),
    )
    op.bulk_insert(
        config_entries,
        [{"key": key, "value": value} for key, value in DEFAULT_CONFIG.items()],
    )


def downgrade() -> None:
    """Drop all rank tracking tables."""
    op.drop_table("config_entries")
    op.drop_index(op.f("ix_alerts_status"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_severity"), table_name="alerts")
    op.drop_index(op.f("ix_alerts_keyword_id"), table_name="alerts")
    op.drop_table("alerts")
    op.drop_index(op.f("ix_weekly_snapshots_week_starting"), table_name="weekly_snapshots")
    op.drop_index(op.f("ix_weekly_snapshots_keyword_id"), table_name="weekly_snapshots")
    op.drop_table("weekly_snapshots")
    op.drop_index(op.f("ix_keywords_url_id"), table_name="keywords")
    op.drop_table("keywords")
    op.drop_index(op.f("ix_notes_url_id"), table_name="notes")
    op.drop_table("notes")
    op.drop_index(op.f("ix_tracked_urls_status"), table_name="tracked_urls")
    op.drop_table("tracked_urls")
