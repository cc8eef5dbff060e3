"""VaultAsset model: one ingested file revision."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assetvault.db.base import Base, utcnow
from assetvault.db.models.enums import SourceProvider

if TYPE_CHECKING:
    from assetvault.db.models.project import ProjectVersion


class VaultAsset(Base):
    """Canonical record of one successfully ingested file revision.

    (source_provider, source_file_id, source_revision) is the dedup key.
    A changed revision produces a new row; rows are never updated by
    the import pipeline.
    """

    __tablename__ = "vault_assets"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Ownership
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    version_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("project_versions.id", ondelete="CASCADE"), nullable=False
    )
    import_job_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("import_jobs.id", ondelete="SET NULL"), nullable=True
    )

    # Stored object
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Provenance
    source_provider: Mapped[SourceProvider | None] = mapped_column(
        Enum(SourceProvider), nullable=True
    )
    source_file_id: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    source_revision: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Audio metadata (absent for documents or when extraction failed)
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)
    sample_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bit_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    channels: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audio_format: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    version: Mapped[ProjectVersion] = relationship("ProjectVersion", back_populates="assets")

    __table_args__ = (
        UniqueConstraint(
            "source_provider",
            "source_file_id",
            "source_revision",
            name="uq_vault_assets_source_identity",
        ),
        Index("ix_vault_assets_project", "project_id"),
        Index("ix_vault_assets_version", "version_id"),
        Index("ix_vault_assets_import_job", "import_job_id"),
    )
