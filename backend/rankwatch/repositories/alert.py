"""AlertRepository: alert creation, listing and workflow updates."""

from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import get_logger
from rankwatch.models.alert import Alert, AlertStatus
from rankwatch.models.keyword import Keyword
from rankwatch.models.tracked_url import TrackedUrl

logger = get_logger(__name__)


class AlertRepository:
    """Repository for Alert rows."""

    TABLE_NAME = "alerts"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self, keyword_id: str, alert_type: str, severity: str, details: str
    ) -> Alert:
        """Persist a new open alert."""
        alert = Alert(
            keyword_id=keyword_id,
            type=alert_type,
            severity=severity,
            details=details,
        )
        self.session.add(alert)
        await self.session.flush()
        logger.debug(
            "Alert created",
            extra={"alert_id": alert.id, "keyword_id": keyword_id, "type": alert_type},
        )
        return alert

    async def get_by_id(self, alert_id: str) -> Alert | None:
        """Fetch one alert."""
        result = await self.session.execute(select(Alert).where(Alert.id == alert_id))
        return result.scalar_one_or_none()

    async def get_with_context(self, alert_id: str) -> tuple[Alert, str, str, str] | None:
        """One alert with (alert, keyword text, url id, url title)."""
        result = await self.session.execute(
            select(Alert, Keyword.keyword, TrackedUrl.id, TrackedUrl.title)
            .join(Keyword, Alert.keyword_id == Keyword.id)
            .join(TrackedUrl, Keyword.url_id == TrackedUrl.id)
            .where(Alert.id == alert_id)
        )
        row = result.one_or_none()
        return (row[0], row[1], row[2], row[3]) if row is not None else None

    async def list_with_context(
        self,
        status: str | None = None,
        severity: str | None = None,
        limit: int = 100,
    ) -> list[tuple[Alert, str, str, str]]:
        """Newest alerts with (alert, keyword text, url id, url title)."""
        stmt = (
            select(Alert, Keyword.keyword, TrackedUrl.id, TrackedUrl.title)
            .join(Keyword, Alert.keyword_id == Keyword.id)
            .join(TrackedUrl, Keyword.url_id == TrackedUrl.id)
            .order_by(Alert.created_at.desc())
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(Alert.status == status)
        if severity is not None:
            stmt = stmt.where(Alert.severity == severity)

        result = await self.session.execute(stmt)
        return [(row[0], row[1], row[2], row[3]) for row in result.all()]

    async def update_fields(self, alert_id: str, fields: dict[str, Any]) -> None:
        """Update workflow columns of one alert."""
        if fields:
            await self.session.execute(
                update(Alert).where(Alert.id == alert_id).values(**fields)
            )

    async def count_open(self) -> int:
        """Number of alerts not yet resolved."""
        result = await self.session.execute(
            select(func.count())
            .select_from(Alert)
            .where(Alert.status != AlertStatus.RESOLVED.value)
        )
        return int(result.scalar_one())

    async def delete_all(self) -> int:
        """Delete every alert."""
        result = await self.session.execute(delete(Alert))
        return int(result.rowcount or 0)
