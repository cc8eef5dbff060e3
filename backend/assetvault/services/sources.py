"""Source enumerator interface and the SourceFile descriptor."""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from assetvault.core.file_types import get_extension
from assetvault.db.models import SourceProvider


def revision_digest(revision: str) -> str:
    """Short stable digest of a revision marker, safe to embed in storage keys."""
    return hashlib.sha256(revision.encode()).hexdigest()[:12]


@dataclass
class SourceFile:
    """A file discovered by a source enumerator.

    Carried in memory through the pipeline; never persisted as such.
    ``revision`` must change whenever the content changes. Sources that
    cannot supply a checksum use a modification timestamp, which also
    changes when a file is touched without edits.
    """

    provider: SourceProvider
    file_id: str
    name: str
    revision: str
    mime_type: str | None = None
    size: int | None = None
    local_path: Path | None = None
    source_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def extension(self) -> str:
        return get_extension(self.name)

    @property
    def identity(self) -> tuple[str, str, str]:
        """The dedup key (provider, file id, revision)."""
        return (self.provider.value, self.file_id, self.revision)

    @property
    def revision_digest(self) -> str:
        return revision_digest(self.revision)


class SourceEnumerator(ABC):
    """Produces SourceFile descriptors from one source.

    Everything downstream of a discovered file only depends on this
    interface.
    """

    provider: SourceProvider

    @abstractmethod
    def iter_files(self) -> AsyncIterator[SourceFile]:
        """Yield accepted files in discovery order."""

    @abstractmethod
    def open_local(self, source_file: SourceFile) -> AbstractAsyncContextManager[Path]:
        """Make the file's bytes available at a local path for the
        duration of the context."""

    def describe(self) -> str:
        """Human-readable description used in version labels."""
        return self.provider.value.replace("_", " ").title()
