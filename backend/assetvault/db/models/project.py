"""Project and ProjectVersion models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assetvault.db.base import Base, utcnow
from assetvault.db.models.enums import SourceProvider

if TYPE_CHECKING:
    from assetvault.db.models.vault_asset import VaultAsset


class Project(Base):
    """A creative project that owns versions and assets."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    versions: Mapped[list[ProjectVersion]] = relationship(
        "ProjectVersion", back_populates="project", cascade="all, delete-orphan"
    )


class ProjectVersion(Base):
    """A checkpoint grouping the assets of one import run or one export.

    Created before the first asset of its run is registered and never
    mutated afterwards.
    """

    __tablename__ = "project_versions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source: Mapped[SourceProvider] = mapped_column(
        Enum(SourceProvider), default=SourceProvider.MANUAL
    )
    import_job_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("import_jobs.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="versions")
    assets: Mapped[list[VaultAsset]] = relationship("VaultAsset", back_populates="version")

    __table_args__ = (
        Index("ix_project_versions_project", "project_id", "created_at"),
    )
