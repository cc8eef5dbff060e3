"""Persistent import job state.

Every mutation is a single conditional UPDATE committed immediately, so
pollers see progress while the job runs and a stale caller can never move
a job out of a terminal state.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.core.logging import get_logger
from assetvault.db.models import ImportJob, ImportJobStatus, ImportSourceType
from assetvault.services.pipeline import FileOutcome

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 2000

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS: dict[ImportJobStatus, frozenset[ImportJobStatus]] = {
    ImportJobStatus.RUNNING: frozenset({ImportJobStatus.PENDING}),
    ImportJobStatus.COMPLETED: frozenset({ImportJobStatus.RUNNING}),
    ImportJobStatus.FAILED: frozenset({ImportJobStatus.PENDING, ImportJobStatus.RUNNING}),
}


class ImportJobError(Exception):
    """Base exception for import job state errors."""

    pass


class ImportJobNotFoundError(ImportJobError):
    """Raised when an import job does not exist."""

    pass


class InvalidJobTransitionError(ImportJobError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, job_id: str, current: ImportJobStatus, target: ImportJobStatus):
        super().__init__(f"Import job {job_id} cannot move from {current.value} to {target.value}")
        self.job_id = job_id
        self.current = current
        self.target = target


class JobNotRunningError(ImportJobError):
    """Raised when counters are updated on a job that is not RUNNING."""

    pass


class ImportJobTracker:
    """Creates import jobs and applies status and counter updates."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create(
        self,
        project_id: str,
        source_type: ImportSourceType = ImportSourceType.GOOGLE_DRIVE,
        source_path: str | None = None,
        sync_config_id: str | None = None,
    ) -> ImportJob:
        """Create a PENDING job."""
        job = ImportJob(
            project_id=project_id,
            source_type=source_type,
            source_path=source_path,
            sync_config_id=sync_config_id,
            status=ImportJobStatus.PENDING,
        )
        async with self.session_maker() as session:
            session.add(job)
            await session.commit()

        logger.info(
            "import_job_created",
            job_id=job.id,
            project_id=project_id,
            source_type=source_type.value,
        )
        return job

    async def get(self, job_id: str) -> ImportJob | None:
        async with self.session_maker() as session:
            return await session.get(ImportJob, job_id)

    async def list_for_project(self, project_id: str, limit: int = 20) -> list[ImportJob]:
        """Get the most recent jobs of a project, newest first."""
        async with self.session_maker() as session:
            result = await session.execute(
                select(ImportJob)
                .where(ImportJob.project_id == project_id)
                .order_by(ImportJob.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def mark_running(self, job_id: str) -> None:
        await self._transition(
            job_id, ImportJobStatus.RUNNING, started_at=datetime.now(timezone.utc)
        )

    async def mark_completed(self, job_id: str) -> None:
        await self._transition(
            job_id, ImportJobStatus.COMPLETED, finished_at=datetime.now(timezone.utc)
        )

    async def mark_failed(self, job_id: str, error_message: str) -> None:
        await self._transition(
            job_id,
            ImportJobStatus.FAILED,
            finished_at=datetime.now(timezone.utc),
            error_message=error_message[:MAX_ERROR_MESSAGE_LENGTH],
        )

    async def increment_total(self, job_id: str) -> None:
        """Count one more discovered file."""
        await self._increment(job_id, ImportJob.total_files)

    async def record_outcome(self, job_id: str, outcome: FileOutcome) -> None:
        """Count a processed file. Skipped duplicates count as processed."""
        if outcome == FileOutcome.FAILED:
            await self._increment(job_id, ImportJob.failed_files)
        else:
            await self._increment(job_id, ImportJob.processed_files)

    async def _transition(self, job_id: str, target: ImportJobStatus, **values) -> None:
        async with self.session_maker() as session:
            result = await session.execute(
                update(ImportJob)
                .where(ImportJob.id == job_id)
                .where(ImportJob.status.in_(ALLOWED_TRANSITIONS[target]))
                .values(status=target, **values)
            )
            await session.commit()

        if result.rowcount == 0:
            current = await self._current_status(job_id)
            raise InvalidJobTransitionError(job_id, current, target)

        logger.info("import_job_status_changed", job_id=job_id, status=target.value)

    async def _increment(self, job_id: str, column) -> None:
        async with self.session_maker() as session:
            result = await session.execute(
                update(ImportJob)
                .where(ImportJob.id == job_id)
                .where(ImportJob.status == ImportJobStatus.RUNNING)
                .values({column: column + 1})
            )
            await session.commit()

        if result.rowcount == 0:
            current = await self._current_status(job_id)
            raise JobNotRunningError(
                f"Import job {job_id} is {current.value}; counters only change while RUNNING"
            )

    async def _current_status(self, job_id: str) -> ImportJobStatus:
        async with self.session_maker() as session:
            status = await session.scalar(select(ImportJob.status).where(ImportJob.id == job_id))
        if status is None:
            raise ImportJobNotFoundError(f"Import job {job_id} not found")
        return status
