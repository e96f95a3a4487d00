"""
Chunk Worker — Transcribes one exported audio chunk.

Each call opens its own transcription session, streams timed tokens,
shifts them onto the global timeline and groups them into short
ChunkSegments. Progress is reported as a fraction of the chunk, throttled
so a busy pool does not flood the shared tracker.
"""

import time
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .asr_worker import TimedTextToken, Transcriber
from .audio_extractor import AudioChunk
from .exceptions import PodscribeError, TranscriptionCancelled, TranscriptionFailed
from .punctuation import PunctuationRestorer

logger = logging.getLogger(__name__)

SENTENCE_TERMINATORS = frozenset(".!?。！？")

# (fraction of this chunk transcribed, 0.0–1.0) -> None
ChunkProgressCallback = Optional[Callable[[float], None]]


@dataclass(frozen=True)
class ChunkSegment:
    """A transcribed span with times on the global (whole-file) timeline."""
    start_time: float
    end_time: float
    text: str

    def __repr__(self):
        return (f"ChunkSegment({self.start_time:.2f}–{self.end_time:.2f}s, "
                f"'{self.text[:40]}')")


def is_sentence_end_char(char: Optional[str]) -> bool:
    return bool(char) and char in SENTENCE_TERMINATORS


class ChunkTranscriptionWorker:
    """
    Turns one AudioChunk into global-time ChunkSegments.

    The worker itself is stateless between calls, so one instance can be
    shared by every thread of the scheduler; engine state lives in the
    per-call session.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        locale: str,
        censor: bool = False,
        restore_punctuation: bool = False,
        max_segment_length: int = 40,
        progress_interval: float = 0.5,
        restorer: Optional[PunctuationRestorer] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.transcriber = transcriber
        self.locale = locale
        self.censor = censor
        self.restore_punctuation = restore_punctuation
        self.max_segment_length = max_segment_length
        self.progress_interval = progress_interval
        self.restorer = restorer or PunctuationRestorer()
        self._clock = clock

    def transcribe_chunk(
        self,
        chunk: AudioChunk,
        on_progress: ChunkProgressCallback = None,
        stop_event: Optional[threading.Event] = None
    ) -> List[ChunkSegment]:
        """
        Transcribe a chunk to completion, or until stop_event is set.

        Raises:
            NotInitialized: If the transcriber was never prepared.
            TranscriptionFailed: If the engine raised mid-stream.
            TranscriptionCancelled: If stop_event was set before the last token.
        """
        session = self.transcriber.open_session(self.locale, self.censor)
        chunk_duration = chunk.duration

        tokens: List[TimedTextToken] = []
        latest_end = 0.0
        last_report = None
        dropped = 0

        try:
            for token in session.transcribe(chunk.path):
                if stop_event is not None and stop_event.is_set():
                    logger.debug(f"Chunk {chunk.index} stopped after {len(tokens)} tokens")
                    raise TranscriptionCancelled(f"Chunk {chunk.index} cancelled")

                if token.time_range is not None and not token.has_finite_time:
                    dropped += 1
                    continue
                tokens.append(token)

                if not token.has_finite_time:
                    continue
                latest_end = max(latest_end, token.end)

                now = self._clock()
                if (on_progress and chunk_duration > 0 and
                        (last_report is None or
                         now - last_report >= self.progress_interval)):
                    on_progress(min(latest_end / chunk_duration, 1.0))
                    last_report = now

        except PodscribeError:
            raise
        except Exception as e:
            logger.error(f"Transcription of chunk {chunk.index} failed: {e}")
            raise TranscriptionFailed(
                f"Transcription failed for chunk {chunk.index}: {e}",
                chunk_index=chunk.index
            ) from e

        if on_progress:
            on_progress(1.0)

        if dropped:
            logger.warning(
                f"Chunk {chunk.index}: dropped {dropped} tokens with "
                f"non-finite timestamps"
            )

        if self.restore_punctuation:
            tokens = self.restorer.restore(tokens)

        segments = self.build_segments(tokens, chunk.start_time)
        logger.debug(
            f"Chunk {chunk.index}: {len(tokens)} tokens → {len(segments)} segments"
        )
        return segments

    def build_segments(
        self,
        tokens: Sequence[TimedTextToken],
        offset: float = 0.0
    ) -> List[ChunkSegment]:
        """
        Group tokens into segments, closing one on a sentence terminator
        or once the buffer reaches max_segment_length characters.

        Untimed tokens (restored punctuation) join an open segment but
        never start one.
        """
        segments: List[ChunkSegment] = []
        buffer = ""
        seg_start: Optional[float] = None
        seg_end = 0.0

        def flush():
            text = buffer.strip()
            if seg_start is not None and text:
                segments.append(ChunkSegment(seg_start + offset, seg_end + offset, text))

        for token in tokens:
            trimmed = token.text.strip()
            if not trimmed:
                continue

            if token.has_finite_time:
                if seg_start is None:
                    seg_start = token.start
                seg_end = token.end
            elif seg_start is None:
                continue

            buffer += token.text

            if (len(buffer) >= self.max_segment_length or
                    is_sentence_end_char(trimmed[-1])):
                flush()
                buffer = ""
                seg_start = None

        flush()
        return segments
