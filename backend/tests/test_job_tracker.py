"""Tests for ImportJobTracker - job status transitions and counters."""

from __future__ import annotations

import pytest

from assetvault.db.models import ImportJobStatus
from assetvault.services.job_tracker import (
    ImportJobNotFoundError,
    ImportJobTracker,
    InvalidJobTransitionError,
    JobNotRunningError,
)
from assetvault.services.pipeline import FileOutcome


@pytest.fixture
def tracker(session_maker) -> ImportJobTracker:
    return ImportJobTracker(session_maker)


@pytest.fixture
async def job(tracker, project):
    return await tracker.create(project.id, source_path="folder-1")


class TestTransitions:
    """Tests for allowed and rejected status changes."""

    @pytest.mark.asyncio
    async def test_created_pending(self, tracker, job):
        stored = await tracker.get(job.id)
        assert stored.status == ImportJobStatus.PENDING
        assert stored.total_files == 0

    @pytest.mark.asyncio
    async def test_happy_path(self, tracker, job):
        await tracker.mark_running(job.id)
        running = await tracker.get(job.id)
        assert running.status == ImportJobStatus.RUNNING
        assert running.started_at is not None

        await tracker.mark_completed(job.id)
        done = await tracker.get(job.id)
        assert done.status == ImportJobStatus.COMPLETED
        assert done.finished_at is not None

    @pytest.mark.asyncio
    async def test_pending_can_fail(self, tracker, job):
        await tracker.mark_failed(job.id, "no folder selected")
        failed = await tracker.get(job.id)
        assert failed.status == ImportJobStatus.FAILED
        assert failed.error_message == "no folder selected"

    @pytest.mark.asyncio
    async def test_pending_cannot_complete(self, tracker, job):
        with pytest.raises(InvalidJobTransitionError) as exc_info:
            await tracker.mark_completed(job.id)
        assert exc_info.value.current == ImportJobStatus.PENDING

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, tracker, job):
        await tracker.mark_running(job.id)
        await tracker.mark_completed(job.id)

        with pytest.raises(InvalidJobTransitionError):
            await tracker.mark_failed(job.id, "late failure")
        with pytest.raises(InvalidJobTransitionError):
            await tracker.mark_running(job.id)

        assert (await tracker.get(job.id)).status == ImportJobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_job(self, tracker):
        with pytest.raises(ImportJobNotFoundError):
            await tracker.mark_running("does-not-exist")


class TestCounters:
    """Tests for progress counters."""

    @pytest.mark.asyncio
    async def test_counters_while_running(self, tracker, job):
        await tracker.mark_running(job.id)
        for _ in range(3):
            await tracker.increment_total(job.id)
        await tracker.record_outcome(job.id, FileOutcome.IMPORTED)
        await tracker.record_outcome(job.id, FileOutcome.SKIPPED)
        await tracker.record_outcome(job.id, FileOutcome.FAILED)

        stored = await tracker.get(job.id)
        assert stored.total_files == 3
        assert stored.processed_files == 2
        assert stored.failed_files == 1
        assert stored.progress_percent == 100

    @pytest.mark.asyncio
    async def test_progress_is_relative_to_discovered_files(self, tracker, job):
        await tracker.mark_running(job.id)
        for _ in range(4):
            await tracker.increment_total(job.id)
        await tracker.record_outcome(job.id, FileOutcome.IMPORTED)

        assert (await tracker.get(job.id)).progress_percent == 25

        # Discovering another file lowers the share
        await tracker.increment_total(job.id)
        assert (await tracker.get(job.id)).progress_percent == 20

    @pytest.mark.asyncio
    async def test_counters_rejected_when_not_running(self, tracker, job):
        with pytest.raises(JobNotRunningError):
            await tracker.increment_total(job.id)

        await tracker.mark_running(job.id)
        await tracker.mark_completed(job.id)
        with pytest.raises(JobNotRunningError):
            await tracker.record_outcome(job.id, FileOutcome.IMPORTED)

    @pytest.mark.asyncio
    async def test_list_for_project(self, tracker, project, job):
        second = await tracker.create(project.id)
        jobs = await tracker.list_for_project(project.id)
        assert {j.id for j in jobs} == {job.id, second.id}
