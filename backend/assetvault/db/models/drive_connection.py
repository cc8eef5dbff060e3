"""DriveConnection and DriveSyncConfig models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assetvault.db.base import Base, utcnow
from assetvault.db.models.enums import ConnectionStatus


class DriveConnection(Base):
    """A connected Google Drive account.

    Tokens are stored encrypted (see assetvault.core.security). The import
    pipeline only ever sees them decrypted through the credential provider.
    """

    __tablename__ = "drive_connections"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    status: Mapped[ConnectionStatus] = mapped_column(
        Enum(ConnectionStatus), default=ConnectionStatus.ACTIVE
    )

    access_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    sync_configs: Mapped[list[DriveSyncConfig]] = relationship(
        "DriveSyncConfig", back_populates="connection", cascade="all, delete-orphan"
    )


class DriveSyncConfig(Base):
    """The Drive folder selected as the import source for a project."""

    __tablename__ = "drive_sync_configs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    connection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("drive_connections.id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    drive_folder_id: Mapped[str] = mapped_column(String(255), nullable=False)
    drive_folder_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    connection: Mapped[DriveConnection] = relationship(
        "DriveConnection", back_populates="sync_configs"
    )

    __table_args__ = (
        UniqueConstraint("connection_id", "project_id", name="uq_drive_sync_configs_connection_project"),
    )
