"""WeeklySnapshot model: one row per keyword per week.

UniqueConstraint on (keyword_id, week_starting) is the idempotence key of
the collection pipeline: live runs upsert on it, backfill inserts skip on it.
"""

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rankwatch.core.database import Base

if TYPE_CHECKING:
    from rankwatch.models.keyword import Keyword


class WeeklySnapshot(Base):
    """Ranking and traffic figures for one keyword in one week.

    Attributes:
        id: UUID primary key
        keyword_id: Owning keyword
        week_starting: Monday of the week the figures belong to
        gsc_position: Average position reported by Search Console
        gsc_clicks: Clicks reported by Search Console (0 when absent)
        gsc_impressions: Impressions reported by Search Console (0 when absent)
        gsc_ctr: Click-through rate reported by Search Console
        serp_position: Organic rank from the SERP check (None = not found)
        serp_features: Comma-joined SERP feature tags seen for the query
        prev_position: serp_position of the prior snapshot
        position_change: prev_position - serp_position, 0 if either is None
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last updated
    """

    __tablename__ = "weekly_snapshots"

    __table_args__ = (
        UniqueConstraint(
            "keyword_id", "week_starting", name="uq_weekly_snapshots_keyword_week"
        ),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    keyword_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("keywords.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    week_starting: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    gsc_position: Mapped[float | None] = mapped_column(Float, nullable=True)

    gsc_clicks: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    gsc_impressions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    gsc_ctr: Mapped[float | None] = mapped_column(Float, nullable=True)

    serp_position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    serp_features: Mapped[str | None] = mapped_column(String(500), nullable=True)

    prev_position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    position_change: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    keyword: Mapped["Keyword"] = relationship(
        "Keyword",
        back_populates="snapshots",
    )

    def __repr__(self) -> str:
        return (
            f"<WeeklySnapshot(keyword_id={self.keyword_id!r}, "
            f"week_starting={self.week_starting!r}, serp_position={self.serp_position!r})>"
        )
