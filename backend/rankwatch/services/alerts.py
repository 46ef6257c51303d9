"""AlertService: listing alerts and moving them through their workflow."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import get_logger
from rankwatch.models.alert import Alert, AlertStatus
from rankwatch.repositories.alert import AlertRepository
from rankwatch.schemas.alert import AlertResponse, AlertUpdate

logger = get_logger(__name__)


class AlertServiceError(Exception):
    """Base exception for AlertService errors."""

    pass


class AlertNotFoundError(AlertServiceError):
    """Raised when an alert is not found."""

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")


def _to_response(alert: Alert, keyword: str, url_id: str, url_title: str) -> AlertResponse:
    return AlertResponse(
        id=alert.id,
        keyword_id=alert.keyword_id,
        keyword=keyword,
        url_id=url_id,
        url_title=url_title,
        type=alert.type,
        severity=alert.severity,
        details=alert.details,
        status=alert.status,
        action=alert.action,
        created_at=alert.created_at,
        resolved_at=alert.resolved_at,
    )


def resolution_fields(current_status: str, new_status: str | None) -> dict[str, Any]:
    """Workflow columns implied by a status change.

    Moving to resolved stamps ``resolved_at``; moving away clears it.
    """
    if new_status is None or new_status == current_status:
        return {}
    fields: dict[str, Any] = {"status": new_status}
    if new_status == AlertStatus.RESOLVED.value:
        fields["resolved_at"] = datetime.now(UTC)
    elif current_status == AlertStatus.RESOLVED.value:
        fields["resolved_at"] = None
    return fields


class AlertService:
    """Business logic for alerts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repository = AlertRepository(session)

    async def list_alerts(
        self,
        status: str | None = None,
        severity: str | None = None,
        limit: int = 100,
    ) -> list[AlertResponse]:
        """Newest alerts first, with keyword and URL context."""
        rows = await self.repository.list_with_context(status=status, severity=severity, limit=limit)
        return [_to_response(*row) for row in rows]

    async def update_alert(self, alert_id: str, data: AlertUpdate) -> AlertResponse:
        """Change an alert's status and/or action.

        Raises:
            AlertNotFoundError: If the alert does not exist
        """
        row = await self.repository.get_with_context(alert_id)
        if row is None:
            raise AlertNotFoundError(alert_id)
        alert = row[0]
        previous_status = alert.status

        fields = resolution_fields(alert.status, data.status)
        if "action" in data.model_fields_set:
            fields["action"] = data.action
        await self.repository.update_fields(alert_id, fields)

        if "status" in fields:
            logger.info(
                "Alert status changed",
                extra={"alert_id": alert_id, "from_status": previous_status, "to_status": fields["status"]},
            )

        await self.session.flush()
        await self.session.refresh(alert)
        return _to_response(alert, *row[1:])
