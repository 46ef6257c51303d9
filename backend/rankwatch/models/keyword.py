"""Keyword model: a search term tracked for one TrackedUrl.

Keyword text is stored lowercase. UniqueConstraint on (url_id, keyword)
prevents the same query being tracked twice for one page.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rankwatch.core.database import Base

if TYPE_CHECKING:
    from rankwatch.models.alert import Alert
    from rankwatch.models.tracked_url import TrackedUrl
    from rankwatch.models.weekly_snapshot import WeeklySnapshot


class KeywordSource(str, Enum):
    """How a keyword came to be tracked."""

    MANUAL = "manual"
    GSC_DISCOVERED = "gsc"


class KeywordIntent(str, Enum):
    """Search intent of a keyword."""

    INFORMATIONAL = "informational"
    COMMERCIAL = "commercial"
    TRANSACTIONAL = "transactional"


class Keyword(Base):
    """A search term tracked for one URL.

    Attributes:
        id: UUID primary key
        url_id: Owning tracked URL
        keyword: Lowercase query text
        source: 'manual' or 'gsc' (auto-discovered from Search Console)
        intent: informational/commercial/transactional
        tracked: Soft-disable flag; untracked keywords are skipped by collection
        created_at: Timestamp when record was created
    """

    __tablename__ = "keywords"

    __table_args__ = (
        UniqueConstraint("url_id", "keyword", name="uq_keywords_url_keyword"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    url_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("tracked_urls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    keyword: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=KeywordSource.MANUAL.value,
        server_default=text("'manual'"),
    )

    intent: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=KeywordIntent.INFORMATIONAL.value,
        server_default=text("'informational'"),
    )

    tracked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    tracked_url: Mapped["TrackedUrl"] = relationship(
        "TrackedUrl",
        back_populates="keywords",
    )

    snapshots: Mapped[list["WeeklySnapshot"]] = relationship(
        "WeeklySnapshot",
        back_populates="keyword",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="WeeklySnapshot.week_starting",
    )

    alerts: Mapped[list["Alert"]] = relationship(
        "Alert",
        back_populates="keyword",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Keyword(id={self.id!r}, keyword={self.keyword!r}, tracked={self.tracked!r})>"
