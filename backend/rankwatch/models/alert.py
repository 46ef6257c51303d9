"""Alert model: a significant ranking change for one keyword.

Alerts are created by the collection pipeline and afterwards only touched by
users moving them through a small workflow (status + free-text action).
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


class AlertType(str, Enum):
    """Kind of ranking change."""

    LEFT_PAGE1 = "left_page1"
    POSITION_DROP = "position_drop"
    RECOVERY = "recovery"
    NEW_TOP3 = "new_top3"


class AlertSeverity(str, Enum):
    """Severity bucket used for grouping in the weekly report."""

    CRITICAL = "critical"
    WARNING = "warning"
    POSITIVE = "positive"


class AlertStatus(str, Enum):
    """Workflow status of an alert."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PLANNED = "planned"
    ON_HOLD = "on_hold"
    MONITORING = "monitoring"
    RESOLVED = "resolved"


class Alert(Base):
    """Alert raised for one keyword by one collection run.

    Attributes:
        id: UUID primary key
        keyword_id: Keyword whose position changed
        type: left_page1/position_drop/recovery/new_top3
        severity: critical/warning/positive
        details: Human readable change, e.g. "#5 → #9 (-4)"
        status: Workflow status (open by default)
        action: Optional free-text note on what is being done about it
        created_at: Timestamp when record was created
        resolved_at: Set when status moves to 'resolved'
    """

    __tablename__ = "alerts"

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

    type: Mapped[str] = mapped_column(String(30), nullable=False)

    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    details: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AlertStatus.OPEN.value,
        server_default=text("'open'"),
        index=True,
    )

    action: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    keyword: Mapped["Keyword"] = relationship(
        "Keyword",
        back_populates="alerts",
    )

    def __repr__(self) -> str:
        return f"<Alert(id={self.id!r}, type={self.type!r}, severity={self.severity!r})>"
