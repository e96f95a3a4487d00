"""
Tests for the Chunk Merger module.
"""

import pytest
from podscribe.chunk_worker import ChunkSegment
from podscribe.merger import ChunkMerger
from config import MergeConfig


@pytest.fixture
def merger():
    return ChunkMerger(MergeConfig(dedup_margin=1.0))


class TestBasicMerge:
    """Test stitching of chunk results."""

    def test_empty_inputs(self, merger):
        assert merger.merge([]) == []

    def test_single_chunk_verbatim(self, merger):
        only = [ChunkSegment(5.0, 6.0, "B"), ChunkSegment(1.0, 2.0, "A")]
        assert merger.merge([only]) == only

    def test_default_margin(self):
        assert ChunkMerger().dedup_margin == 1.0

    def test_sorted_by_start(self, merger):
        chunk_a = [ChunkSegment(1.0, 4.0, "First"), ChunkSegment(290.0, 299.0, "Second")]
        chunk_b = [ChunkSegment(310.0, 312.0, "Fourth"), ChunkSegment(299.0, 305.0, "Third")]
        merged = merger.merge([chunk_a, chunk_b])
        assert [s.text for s in merged] == ["First", "Second", "Third", "Fourth"]


class TestOverlapResolution:
    """Test de-duplication of the overlap window."""

    def test_duplicate_in_overlap_dropped(self, merger):
        chunk_1 = [ChunkSegment(295.0, 299.0, "Earlier"), ChunkSegment(299.5, 301.5, "Tail")]
        chunk_2 = [ChunkSegment(300.0, 301.4, "Tail again"), ChunkSegment(303.0, 306.0, "New")]

        merged = merger.merge([chunk_1, chunk_2])

        assert [s.text for s in merged] == ["Earlier", "Tail", "New"]

    def test_segment_at_threshold_kept(self, merger):
        chunk_1 = [ChunkSegment(290.0, 301.5, "Tail")]
        chunk_2 = [ChunkSegment(300.5, 302.0, "Boundary")]
        merged = merger.merge([chunk_1, chunk_2])
        assert [s.text for s in merged] == ["Tail", "Boundary"]

    def test_empty_previous_chunk_keeps_everything(self, merger):
        chunk_2 = [ChunkSegment(0.5, 1.0, "Kept")]
        merged = merger.merge([[], chunk_2])
        assert [s.text for s in merged] == ["Kept"]

    def test_threshold_uses_previous_raw_list(self, merger):
        chunk_0 = [ChunkSegment(0.0, 300.0, "A")]
        chunk_1 = [ChunkSegment(298.5, 598.0, "B")]  # dropped: 298.5 < 299.0
        chunk_2 = [ChunkSegment(596.5, 600.0, "C")]  # dropped: 596.5 < 597.0
        merged = merger.merge([chunk_0, chunk_1, chunk_2])
        assert [s.text for s in merged] == ["A"]

    def test_custom_margin(self):
        merger = ChunkMerger(MergeConfig(dedup_margin=0.0))
        chunk_1 = [ChunkSegment(0.0, 301.5, "Tail")]
        chunk_2 = [ChunkSegment(301.0, 303.0, "Overlap")]
        assert [s.text for s in merger.merge([chunk_1, chunk_2])] == ["Tail"]
