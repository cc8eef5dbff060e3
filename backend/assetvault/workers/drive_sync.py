"""Periodic Drive imports for enabled folder selections.

Disabled unless ASSETVAULT_DRIVE_SYNC_ENABLED is set. Each tick starts
one import per project with an enabled selection, unless that project
already has a job pending or running.
"""

from __future__ import annotations

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetvault.core.config import settings
from assetvault.core.logging import get_logger
from assetvault.db.models import ImportJob, ImportJobStatus
from assetvault.db.session import async_session_maker
from assetvault.services.drive_import import DriveImportService
from assetvault.services.errors import ImportPipelineError
from assetvault.workers.drive_import import DriveImportWorker, get_import_worker

logger = get_logger(__name__)

STARTUP_DELAY_SECONDS = 60


class DriveSyncScheduler:
    """Starts Drive imports on a fixed interval."""

    def __init__(
        self,
        worker: DriveImportWorker | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        interval: int | None = None,
    ):
        self.worker = worker or get_import_worker()
        self.session_maker = session_maker or async_session_maker
        self.interval = interval or settings.drive_sync_interval
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("drive_sync_started", interval_seconds=self.interval)

    async def stop(self) -> None:
        """Stop the scheduler. Imports already started keep running."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("drive_sync_stopped")

    async def _run_loop(self) -> None:
        await asyncio.sleep(STARTUP_DELAY_SECONDS)

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("drive_sync_error", error=str(e), exc_info=True)

            await asyncio.sleep(self.interval)

    async def run_once(self) -> list[str]:
        """Start imports for every enabled selection.

        Returns:
            IDs of the jobs started.
        """
        started: list[str] = []
        async with self.session_maker() as session:
            service = DriveImportService(session)
            configs = await service.list_enabled_sync_configs()

            for config in configs:
                if await self._has_active_job(session, config.project_id):
                    logger.debug("drive_sync_project_busy", project_id=config.project_id)
                    continue
                try:
                    job = await service.start_import(config.project_id)
                except ImportPipelineError as e:
                    logger.warning("drive_sync_start_failed", project_id=config.project_id, error=str(e))
                    continue
                started.append(job.id)

            await session.commit()

        for job_id in started:
            self.worker.submit(job_id)

        if started:
            logger.info("drive_sync_jobs_started", count=len(started))
        return started

    @staticmethod
    async def _has_active_job(session: AsyncSession, project_id: str) -> bool:
        result = await session.execute(
            select(ImportJob.id)
            .where(
                ImportJob.project_id == project_id,
                ImportJob.status.in_([ImportJobStatus.PENDING, ImportJobStatus.RUNNING]),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None


# Global scheduler instance
_scheduler: DriveSyncScheduler | None = None


def get_drive_sync_scheduler() -> DriveSyncScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = DriveSyncScheduler()
    return _scheduler
