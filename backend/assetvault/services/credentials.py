"""Credential provider for connected Drive accounts.

Tokens are obtained and refreshed elsewhere. This module only turns a
stored DriveConnection into a decrypted token pair for one import run.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetvault.core.logging import get_logger
from assetvault.core.security import TokenDecryptionError, decrypt_token
from assetvault.db.models import ConnectionStatus, DriveConnection
from assetvault.services.errors import ConfigurationError

logger = get_logger(__name__)


class AccessCredentials(BaseModel):
    """A decrypted OAuth token pair."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None


class ConnectionCredentialProvider:
    """Resolves decrypted credentials for a DriveConnection."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_connection(self) -> DriveConnection | None:
        """Get the most recently updated active connection."""
        result = await self.db.execute(
            select(DriveConnection)
            .where(DriveConnection.status == ConnectionStatus.ACTIVE)
            .order_by(DriveConnection.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_credentials(self, connection_id: str) -> AccessCredentials:
        """Decrypt the tokens of an active connection.

        Raises:
            ConfigurationError: If the connection is missing, inactive, has
                no access token, or its tokens cannot be decrypted.
        """
        connection = await self.db.get(DriveConnection, connection_id)
        if connection is None:
            raise ConfigurationError(f"Drive connection {connection_id} not found")
        if connection.status != ConnectionStatus.ACTIVE:
            raise ConfigurationError(
                f"Drive connection {connection.email} is {connection.status.value.lower()}"
            )
        if not connection.access_token_encrypted:
            raise ConfigurationError(f"Drive connection {connection.email} has no access token")

        try:
            access_token = decrypt_token(connection.access_token_encrypted)
            refresh_token = (
                decrypt_token(connection.refresh_token_encrypted)
                if connection.refresh_token_encrypted
                else None
            )
        except TokenDecryptionError as e:
            logger.error(
                "drive_token_decryption_failed",
                connection_id=connection.id,
                error=str(e),
            )
            raise ConfigurationError(
                "Stored Drive tokens could not be decrypted; reconnect the account"
            ) from e

        return AccessCredentials(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=connection.expires_at,
        )
