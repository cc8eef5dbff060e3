"""ImportJob model tracking one enumeration-and-ingest run."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assetvault.db.base import Base, utcnow
from assetvault.db.models.enums import ImportJobStatus, ImportSourceType


class ImportJob(Base):
    """Persisted progress of an import run.

    Owned by the worker that runs it; API callers only read it. Counters
    are updated after every file so progress is visible mid-run.
    """

    __tablename__ = "import_jobs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    source_type: Mapped[ImportSourceType] = mapped_column(
        Enum(ImportSourceType), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    sync_config_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("drive_sync_configs.id", ondelete="SET NULL"), nullable=True
    )
    source_path: Mapped[str | None] = mapped_column(
        String(2048), nullable=True, doc="Drive folder ID or local folder path"
    )

    status: Mapped[ImportJobStatus] = mapped_column(
        Enum(ImportJobStatus), default=ImportJobStatus.PENDING
    )

    # Progress tracking
    total_files: Mapped[int] = mapped_column(Integer, default=0)
    processed_files: Mapped[int] = mapped_column(Integer, default=0)
    failed_files: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_import_jobs_project_created", "project_id", "created_at"),
        Index("ix_import_jobs_status", "status"),
    )

    @property
    def progress_percent(self) -> float | None:
        """Percentage of discovered files handled.

        total_files grows as the listing pages in, so while RUNNING this is
        relative to the files found so far, not to the whole folder.
        """
        if self.total_files and self.total_files > 0:
            done = (self.processed_files or 0) + (self.failed_files or 0)
            return done / self.total_files * 100
        return None
