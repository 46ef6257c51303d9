"""ConfigRepository: flat key/value run configuration."""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import get_logger
from rankwatch.models.config_entry import ConfigEntry

logger = get_logger(__name__)


class ConfigRepository:
    """Repository for ConfigEntry rows."""

    TABLE_NAME = "config_entries"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_all(self) -> dict[str, str]:
        """Every config entry as a plain mapping."""
        result = await self.session.execute(select(ConfigEntry))
        return {entry.key: entry.value for entry in result.scalars()}

    async def upsert_many(self, values: dict[str, str]) -> None:
        """Create or overwrite the given keys; other keys are left alone."""
        if not values:
            return

        result = await self.session.execute(
            select(ConfigEntry).where(ConfigEntry.key.in_(list(values)))
        )
        existing = {entry.key: entry for entry in result.scalars()}

        for key, value in values.items():
            entry = existing.get(key)
            if entry is None:
                self.session.add(ConfigEntry(key=key, value=value))
            else:
                entry.value = value
                entry.updated_at = datetime.now(UTC)
        await self.session.flush()

        logger.info("Config updated", extra={"keys": sorted(values)})
