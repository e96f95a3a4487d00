"""
Tests for chunk range computation and the chunk exporter.
"""

import math
import tempfile
from pathlib import Path

import pytest
from podscribe.audio_extractor import (
    CHUNK_DIR_PREFIX, AudioChunk, AudioChunkExporter, AudioSource,
    compute_chunk_ranges,
)
from podscribe.exceptions import ExportFailed, InvalidDuration

from conftest import FakeRangeExporter


@pytest.fixture
def source(tmp_path):
    return AudioSource(path=tmp_path / "episode.wav", duration=720.0, sample_rate=16000)


class TestChunkRanges:
    """Test the overlapping window layout."""

    def test_twelve_minutes(self):
        ranges = compute_chunk_ranges(720.0, 300.0, 2.0)
        assert ranges == [(0, 0.0, 300.0), (1, 298.0, 598.0), (2, 596.0, 720.0)]

    def test_shorter_than_one_chunk(self):
        assert compute_chunk_ranges(42.0, 300.0, 2.0) == [(0, 0.0, 42.0)]

    def test_exact_multiple(self):
        ranges = compute_chunk_ranges(600.0, 300.0, 0.0)
        assert ranges == [(0, 0.0, 300.0), (1, 300.0, 600.0)]

    def test_covers_whole_duration(self):
        ranges = compute_chunk_ranges(3601.5, 300.0, 2.0)
        assert ranges[0][1] == 0.0
        assert ranges[-1][2] == 3601.5
        for (_, _, prev_end), (_, start, _) in zip(ranges, ranges[1:]):
            assert start == pytest.approx(prev_end - 2.0)

    def test_indices_sequential(self):
        ranges = compute_chunk_ranges(1000.0, 300.0, 2.0)
        assert [r[0] for r in ranges] == list(range(len(ranges)))

    @pytest.mark.parametrize("duration", [0.0, -5.0, math.nan, math.inf])
    def test_invalid_duration(self, duration):
        with pytest.raises(InvalidDuration):
            compute_chunk_ranges(duration)

    def test_overlap_must_be_smaller_than_chunk(self):
        with pytest.raises(ValueError):
            compute_chunk_ranges(720.0, 10.0, 10.0)

    def test_chunk_duration_positive(self):
        with pytest.raises(ValueError):
            compute_chunk_ranges(720.0, 0.0, 0.0)


class TestChunkExporter:
    """Test chunk materialization and cleanup."""

    def test_exports_all_chunks_in_order(self, source, range_exporter):
        exporter = AudioChunkExporter(range_exporter)
        chunks = exporter.export(source, 720.0, 300.0, 2.0)
        try:
            assert [c.index for c in chunks] == [0, 1, 2]
            assert [(c.start_time, c.end_time) for c in chunks] == [
                (0.0, 300.0), (298.0, 598.0), (596.0, 720.0)
            ]
            assert all(Path(c.path).exists() for c in chunks)
            assert Path(chunks[0].path).parent.name.startswith(CHUNK_DIR_PREFIX)
            assert chunks[2].duration == pytest.approx(124.0)
        finally:
            AudioChunkExporter.cleanup(chunks)

    def test_cleanup_removes_files_and_dir(self, source, range_exporter):
        exporter = AudioChunkExporter(range_exporter)
        chunks = exporter.export(source, 720.0)
        work_dir = Path(chunks[0].path).parent

        AudioChunkExporter.cleanup(chunks)

        assert not any(Path(c.path).exists() for c in chunks)
        assert not work_dir.exists()

    def test_cleanup_tolerates_missing_files(self, tmp_path):
        missing = AudioChunk(0, tmp_path / "gone.wav", 0.0, 1.0)
        AudioChunkExporter.cleanup([missing])
        assert tmp_path.exists()

    def test_failure_aborts_and_cleans_up(self, source, monkeypatch, tmp_path):
        created = []
        real_mkdtemp = tempfile.mkdtemp

        def tracking_mkdtemp(*args, **kwargs):
            path = real_mkdtemp(*args, dir=tmp_path, **kwargs)
            created.append(Path(path))
            return path

        monkeypatch.setattr("podscribe.audio_extractor.tempfile.mkdtemp",
                            tracking_mkdtemp)
        exporter = AudioChunkExporter(FakeRangeExporter(fail_at={298.0}))

        with pytest.raises(ExportFailed) as exc_info:
            exporter.export(source, 720.0, 300.0, 2.0)

        assert exc_info.value.chunk_index == 1
        assert created and not created[0].exists()

    def test_invalid_duration_before_export(self, source, range_exporter):
        exporter = AudioChunkExporter(range_exporter)
        with pytest.raises(InvalidDuration):
            exporter.export(source, math.nan)
        assert range_exporter.calls == []

    def test_unexpected_error_wrapped(self, source):
        class Broken:
            def export_range(self, source, start, end, dest):
                raise OSError("disk full")

        with pytest.raises(ExportFailed) as exc_info:
            AudioChunkExporter(Broken()).export(source, 100.0)
        assert exc_info.value.chunk_index == 0
        assert "disk full" in str(exc_info.value)
