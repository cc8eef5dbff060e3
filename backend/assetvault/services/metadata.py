"""Audio metadata extraction with ffprobe."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from assetvault.core.config import settings
from assetvault.core.file_types import is_audio_file
from assetvault.core.logging import get_logger
from assetvault.services.errors import MetadataExtractionError

logger = get_logger(__name__)


class FileMetadata(BaseModel):
    """Structural metadata of a file. Every field is optional."""

    duration: float | None = None
    sample_rate: int | None = None
    bit_rate: int | None = None
    channels: int | None = None
    audio_format: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_ffprobe_output(data: dict[str, Any]) -> FileMetadata:
    """Build FileMetadata from ``ffprobe -show_format -show_streams`` JSON.

    Values ffprobe reports as strings are converted; values that cannot be
    converted are left empty.
    """
    fmt = data.get("format") or {}
    streams = data.get("streams") or []
    audio = next((s for s in streams if s.get("codec_type") == "audio"), {})

    duration = _to_float(fmt.get("duration"))
    if duration is None:
        duration = _to_float(audio.get("duration"))
    bit_rate = _to_int(fmt.get("bit_rate"))
    if bit_rate is None:
        bit_rate = _to_int(audio.get("bit_rate"))

    return FileMetadata(
        duration=duration,
        sample_rate=_to_int(audio.get("sample_rate")),
        bit_rate=bit_rate,
        channels=_to_int(audio.get("channels")),
        audio_format=fmt.get("format_name"),
    )


class MetadataExtractor:
    """Runs ffprobe on audio files.

    Non-audio files get empty metadata without spawning a process. A
    missing ffprobe binary is logged once and then treated the same way.
    """

    def __init__(self, ffprobe_path: str | None = None, timeout: float | None = None):
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path
        self.timeout = timeout or settings.ffprobe_timeout
        self._unavailable = False

    async def extract(self, path: Path, mime_type: str | None = None) -> FileMetadata:
        """Extract metadata from a local file.

        Raises:
            MetadataExtractionError: If ffprobe cannot be started, fails, times
                out or returns output that is not JSON.
        """
        if not is_audio_file(path.name, mime_type) or self._unavailable:
            return FileMetadata()

        try:
            proc = await asyncio.create_subprocess_exec(
                self.ffprobe_path,
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            self._unavailable = True
            logger.warning("ffprobe_not_found", ffprobe_path=self.ffprobe_path)
            return FileMetadata()
        except OSError as e:
            raise MetadataExtractionError(f"Could not run {self.ffprobe_path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise MetadataExtractionError(
                f"ffprobe timed out after {self.timeout}s on {path.name}"
            ) from e

        if proc.returncode != 0:
            raise MetadataExtractionError(
                f"ffprobe exited with {proc.returncode}: "
                f"{stderr.decode('utf-8', errors='replace')[:500]}"
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace") or "{}")
        except json.JSONDecodeError as e:
            raise MetadataExtractionError(f"ffprobe output is not JSON: {e}") from e

        metadata = parse_ffprobe_output(data)
        logger.debug("metadata_extracted", path=str(path), **metadata.model_dump(exclude_none=True))
        return metadata
