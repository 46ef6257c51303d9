"""ConfigService: reading and writing the run configuration."""

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from rankwatch.core.logging import get_logger
from rankwatch.repositories.config import ConfigRepository
from rankwatch.services.pipeline_config import DEFAULT_CONFIG, PipelineConfig

logger = get_logger(__name__)


class ConfigServiceError(Exception):
    """Base exception for ConfigService errors."""

    pass


class ConfigValidationError(ConfigServiceError):
    """Raised when an update would leave the configuration unparseable."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Invalid configuration: {message}")


class ConfigService:
    """Business logic for run configuration."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repository = ConfigRepository(session)

    async def get_config(self) -> dict[str, str]:
        """Stored values merged over the defaults."""
        return {**DEFAULT_CONFIG, **await self.repository.get_all()}

    async def update_config(self, values: dict[str, str]) -> dict[str, str]:
        """Create or overwrite keys after checking the result still parses.

        Raises:
            ConfigValidationError: If the merged configuration is invalid
        """
        merged = {**await self.repository.get_all(), **values}
        try:
            PipelineConfig.from_entries(merged)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            logger.warning("Config update rejected", extra={"keys": sorted(values), "errors": errors})
            raise ConfigValidationError(errors) from e

        await self.repository.upsert_many(values)
        return await self.get_config()
