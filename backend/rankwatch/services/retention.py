"""Deletes snapshots that fell out of the retention window."""

from datetime import datetime

from rankwatch.repositories.snapshot import SnapshotRepository
from rankwatch.services.periods import retention_cutoff


class RetentionSweep:
    """Age-based snapshot deletion."""

    def __init__(self, repository: SnapshotRepository) -> None:
        self.repository = repository

    async def sweep(self, now: datetime, archive_weeks: int) -> int:
        """Delete snapshots older than ``archive_weeks`` weeks. Returns the count."""
        return await self.repository.delete_older_than(retention_cutoff(now, archive_weeks))
