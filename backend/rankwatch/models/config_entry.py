"""ConfigEntry model: flat key/value run configuration."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from rankwatch.core.database import Base


class ConfigEntry(Base):
    """One run-level configuration value, stored as a string."""

    __tablename__ = "config_entries"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)

    value: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<ConfigEntry(key={self.key!r}, value={self.value!r})>"
