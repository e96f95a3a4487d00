"""
Chunk Merger — Stitches per-chunk segment lists into one timeline.

Adjacent chunks share an overlap window, so the same words can show up
at the end of chunk i-1 and the start of chunk i. The merger keeps the
earlier chunk's version (it heard more preceding audio) and drops the
later chunk's segments that start inside the already covered region.
"""

import logging
from typing import List, Sequence

from .chunk_worker import ChunkSegment

logger = logging.getLogger(__name__)


class ChunkMerger:
    """
    Merges ChunkSegment lists with overlap de-duplication.

    Rules:
    1. Chunk 0 is taken verbatim
    2. For chunk i, threshold = (last end time of chunk i-1) - dedup_margin
    3. Segments of chunk i starting before the threshold are dropped
    4. Survivors are concatenated and sorted by start time

    The margin is a fixed heuristic, independent of the export overlap.
    """

    def __init__(self, config=None):
        self.dedup_margin = getattr(config, "dedup_margin", 1.0)

    def merge(self, chunk_results: Sequence[Sequence[ChunkSegment]]) -> List[ChunkSegment]:
        """
        Args:
            chunk_results: One segment list per chunk, in chunk order.

        Returns:
            Ordered, de-duplicated list of ChunkSegments.
        """
        if not chunk_results:
            return []
        if len(chunk_results) == 1:
            return list(chunk_results[0])

        merged: List[ChunkSegment] = list(chunk_results[0])
        dropped = 0

        for chunk_index in range(1, len(chunk_results)):
            previous = chunk_results[chunk_index - 1]
            previous_end = previous[-1].end_time if previous else 0.0
            threshold = previous_end - self.dedup_margin

            for segment in chunk_results[chunk_index]:
                if segment.start_time < threshold:
                    dropped += 1
                    continue
                merged.append(segment)

        merged.sort(key=lambda s: s.start_time)

        logger.info(
            f"Merged {len(chunk_results)} chunks → {len(merged)} segments "
            f"({dropped} overlap duplicates dropped)"
        )
        return merged
