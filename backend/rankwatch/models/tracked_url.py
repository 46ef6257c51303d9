"""TrackedUrl and Note models.

A TrackedUrl is a monitored article/page:
- status: coarse trend label, only ever moved to 'declining' automatically
- priority: editorial priority used by the dashboard
- keywords: search terms tracked for this page (cascade delete)
- notes: free-text changelog entries (cascade delete)
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rankwatch.core.database import Base

if TYPE_CHECKING:
    from rankwatch.models.keyword import Keyword


class UrlStatus(str, Enum):
    """Coarse ranking trend of a tracked URL."""

    ACTIVE = "active"
    GROWING = "growing"
    DECLINING = "declining"
    RECOVERING = "recovering"


class UrlPriority(str, Enum):
    """Editorial priority of a tracked URL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TrackedUrl(Base):
    """A monitored page.

    Attributes:
        id: UUID primary key
        url: Full page URL as submitted to Search Console
        title: Display title used in reports
        category: Free-form grouping label
        status: Trend label (active/growing/declining/recovering)
        priority: Editorial priority (low/medium/high/urgent)
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last updated
    """

    __tablename__ = "tracked_urls"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )

    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=UrlStatus.ACTIVE.value,
        server_default=text("'active'"),
        index=True,
    )

    priority: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=UrlPriority.MEDIUM.value,
        server_default=text("'medium'"),
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

    keywords: Mapped[list["Keyword"]] = relationship(
        "Keyword",
        back_populates="tracked_url",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    notes: Mapped[list["Note"]] = relationship(
        "Note",
        back_populates="tracked_url",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Note.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<TrackedUrl(id={self.id!r}, url={self.url!r}, status={self.status!r})>"


class Note(Base):
    """Changelog entry attached to a tracked URL."""

    __tablename__ = "notes"

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

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    tracked_url: Mapped["TrackedUrl"] = relationship(
        "TrackedUrl",
        back_populates="notes",
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id!r}, url_id={self.url_id!r})>"
