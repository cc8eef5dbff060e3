"""Tests for ffprobe metadata extraction."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from assetvault.services import metadata as metadata_module
from assetvault.services.errors import MetadataExtractionError
from assetvault.services.metadata import MetadataExtractor, parse_ffprobe_output

FFPROBE_WAV = {
    "streams": [
        {"codec_type": "audio", "sample_rate": "48000", "channels": 2, "duration": "182.5"},
    ],
    "format": {"format_name": "wav", "duration": "182.500000", "bit_rate": "2304000"},
}


def _fake_process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.wait = AsyncMock(return_value=returncode)
    proc.returncode = returncode
    return proc


class TestParseFfprobeOutput:
    """Tests for parse_ffprobe_output."""

    def test_parses_wav(self):
        result = parse_ffprobe_output(FFPROBE_WAV)
        assert result.duration == 182.5
        assert result.sample_rate == 48000
        assert result.bit_rate == 2304000
        assert result.channels == 2
        assert result.audio_format == "wav"

    def test_empty_output(self):
        result = parse_ffprobe_output({})
        assert result.is_empty

    def test_unparseable_values_are_dropped(self):
        result = parse_ffprobe_output({"format": {"duration": "N/A", "format_name": "mp3"}})
        assert result.duration is None
        assert result.audio_format == "mp3"


class TestMetadataExtractor:
    """Tests for MetadataExtractor."""

    @pytest.mark.asyncio
    async def test_non_audio_skips_ffprobe(self, tmp_path):
        path = tmp_path / "lyrics.txt"
        path.write_text("la la")
        with patch.object(metadata_module.asyncio, "create_subprocess_exec") as spawn:
            result = await MetadataExtractor().extract(path)
        spawn.assert_not_called()
        assert result.is_empty

    @pytest.mark.asyncio
    async def test_missing_ffprobe_returns_empty(self, tmp_path):
        path = tmp_path / "mix.wav"
        path.write_bytes(b"RIFF")
        extractor = MetadataExtractor(ffprobe_path="definitely-not-installed-ffprobe")
        result = await extractor.extract(path)
        assert result.is_empty

        # Not retried once known missing
        with patch.object(metadata_module.asyncio, "create_subprocess_exec") as spawn:
            await extractor.extract(path)
        spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_unlaunchable_ffprobe_raises(self, tmp_path):
        path = tmp_path / "mix.wav"
        path.write_bytes(b"RIFF")
        extractor = MetadataExtractor()
        with patch.object(
            metadata_module.asyncio,
            "create_subprocess_exec",
            AsyncMock(side_effect=PermissionError(13, "Permission denied")),
        ):
            with pytest.raises(MetadataExtractionError, match="Permission denied"):
                await extractor.extract(path)

        # A launch failure is not remembered as a missing binary
        assert not extractor._unavailable

    @pytest.mark.asyncio
    async def test_successful_extraction(self, tmp_path):
        path = tmp_path / "mix.wav"
        path.write_bytes(b"RIFF")
        proc = _fake_process(stdout=json.dumps(FFPROBE_WAV).encode())
        with patch.object(
            metadata_module.asyncio, "create_subprocess_exec", AsyncMock(return_value=proc)
        ):
            result = await MetadataExtractor().extract(path)
        assert result.sample_rate == 48000
        assert result.channels == 2

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self, tmp_path):
        path = tmp_path / "broken.wav"
        path.write_bytes(b"nope")
        proc = _fake_process(stderr=b"Invalid data found", returncode=1)
        with patch.object(
            metadata_module.asyncio, "create_subprocess_exec", AsyncMock(return_value=proc)
        ):
            with pytest.raises(MetadataExtractionError, match="Invalid data"):
                await MetadataExtractor().extract(path)

    @pytest.mark.asyncio
    async def test_timeout_raises(self, tmp_path):
        path = tmp_path / "slow.wav"
        path.write_bytes(b"RIFF")
        proc = _fake_process()
        proc.communicate = AsyncMock(side_effect=asyncio.TimeoutError)
        with patch.object(
            metadata_module.asyncio, "create_subprocess_exec", AsyncMock(return_value=proc)
        ):
            with pytest.raises(MetadataExtractionError, match="timed out"):
                await MetadataExtractor(timeout=1).extract(path)
        proc.kill.assert_called_once()
