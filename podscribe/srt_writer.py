"""
SRT Writer — SubRip subtitle and word-timing serializers.

Renders the final segment sequence two ways:
  - SRT text with sequential indices and HH:MM:SS,mmm timestamps
  - A JSON side channel with per-word timing for each segment
"""

import json
import math
import logging
from typing import List, Sequence

logger = logging.getLogger(__name__)


class SRTWriter:
    """
    Writes timed segments as SRT (SubRip).

    SRT format:
        1
        00:00:01,200 --> 00:00:04,800
        Hello everyone, welcome to the show.

        2
        00:00:05,100 --> 00:00:06,300
        Today we're talking about podcasts.
    """

    def format(self, entries: Sequence) -> str:
        """
        Render entries (anything with start_time, end_time, text) as SRT.

        Entries are re-indexed from 1 in the order given.
        """
        blocks = []
        for i, entry in enumerate(entries):
            blocks.append(
                f"{i + 1}\n"
                f"{self.format_timestamp(entry.start_time)} --> "
                f"{self.format_timestamp(entry.end_time)}\n"
                f"{entry.text.strip()}\n"
                f"\n"
            )
        return "".join(blocks)

    @staticmethod
    def format_timestamp(seconds: float) -> str:
        """
        Convert seconds to SRT timestamp format: HH:MM:SS,mmm

        Negative and non-finite values clamp to zero instead of raising.

        Args:
            seconds: Time in seconds (e.g., 125.340)

        Returns:
            Formatted timestamp string (e.g., "00:02:05,340")
        """
        if not math.isfinite(seconds) or seconds < 0:
            seconds = 0.0

        total_ms = int(round(seconds * 1000))
        hours, rem = divmod(total_ms, 3_600_000)
        minutes, rem = divmod(rem, 60_000)
        secs, millis = divmod(rem, 1000)

        return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"

    def write_preview(self, entries: Sequence, max_entries: int = 10) -> str:
        """
        Generate a text preview of the subtitle entries.

        Args:
            entries: Timed segments.
            max_entries: Maximum entries to include in preview.

        Returns:
            Formatted string preview.
        """
        lines = []
        shown = min(len(entries), max_entries)

        for entry in entries[:shown]:
            ts_start = self.format_timestamp(entry.start_time)
            ts_end = self.format_timestamp(entry.end_time)
            text_preview = entry.text[:80]
            if len(entry.text) > 80:
                text_preview += "..."
            lines.append(f"  [{ts_start} → {ts_end}] {text_preview}")

        if len(entries) > shown:
            lines.append(f"  ... and {len(entries) - shown} more entries")

        return "\n".join(lines)


class WordTimingWriter:
    """
    Serializes SegmentWithWordTimings records to JSON.

    Output shape:
        {"segments": [{"id": 1, "startTime": 0.5, "endTime": 1.2,
                       "text": "...", "wordTimings": [{"word": ...}]}]}

    Segments without word timing are left out; the SRT is unaffected.
    """

    @staticmethod
    def to_dict(records: Sequence) -> dict:
        segments: List[dict] = []
        for record in records:
            if not record.word_timings:
                continue
            segments.append({
                "id": record.id,
                "startTime": record.start_time,
                "endTime": record.end_time,
                "text": record.text,
                "wordTimings": [
                    {
                        "word": timing.word,
                        "startTime": timing.start_time,
                        "endTime": timing.end_time,
                    }
                    for timing in record.word_timings
                ],
            })
        return {"segments": segments}

    def format(self, records: Sequence) -> str:
        return json.dumps(self.to_dict(records), indent=2, sort_keys=True,
                          ensure_ascii=False)
