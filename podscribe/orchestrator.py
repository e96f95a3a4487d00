"""
Transcript Service — Public entry points of the transcription pipeline.

Paths:
  1. Single pass: one session over the whole file → segmenter → SRT
  2. Chunked (long audio): export overlapping chunks → parallel chunk
     workers → overlap merge → SRT

Progress-reporting variants are generators of ProgressEvent. The last
event has is_complete=True and carries the rendered output; failures are
raised from the generator instead.
"""

import math
import queue
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .asr_worker import TimedTextToken, Transcriber, WhisperTranscriber
from .audio_extractor import AudioChunkExporter, AudioSource, FFmpegRangeExporter
from .chunk_worker import ChunkTranscriptionWorker
from .exceptions import (EmptyTranscript, InvalidDuration, NotInitialized,
                         PodscribeError, TranscriptionFailed)
from .locale_resolver import locale_info
from .merger import ChunkMerger
from .punctuation import PunctuationRestorer
from .scheduler import ParallelTranscriptionScheduler
from .segmenter import TranscriptSegmenter
from .srt_writer import SRTWriter, WordTimingWriter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update; the terminal event carries the output."""
    progress: float                      # 0.0 to 1.0
    current_time_seconds: float
    total_duration_seconds: float
    is_complete: bool = False
    srt_content: Optional[str] = None    # only set when is_complete
    word_timings_json: Optional[str] = None


class TranscriptService:
    """
    Transcribes audio into plain text or subtitles.

    Usage:
        service = TranscriptService("zh-tw", config=load_config())
        service.setup()
        for event in service.transcribe_to_subtitles_chunked_with_progress(source):
            ...
    """

    def __init__(
        self,
        language: str = "en",
        censor: bool = False,
        config=None,
        transcriber: Optional[Transcriber] = None,
        exporter: Optional[AudioChunkExporter] = None
    ):
        self.config = config
        self.locale = locale_info(language)
        self.censor = censor

        chunking = getattr(config, "chunking", None)
        self.chunk_duration = getattr(chunking, "chunk_duration", 300.0)
        self.overlap = getattr(chunking, "overlap", 2.0)
        self.min_chunked_duration = getattr(chunking, "min_chunked_duration", 600.0)
        self.max_concurrency = getattr(chunking, "max_concurrency", 0)
        self.concurrency_limit = getattr(chunking, "concurrency_limit", 4)

        progress = getattr(config, "progress", None)
        self.progress_cap = getattr(progress, "cap", 0.99)
        self.chunk_report_interval = getattr(progress, "chunk_report_interval", 0.5)

        punctuation = getattr(config, "punctuation", None)
        self.restore_punctuation = getattr(punctuation, "enabled", True)
        self.restorer = PunctuationRestorer(
            comma_threshold=getattr(punctuation, "comma_threshold", 0.5),
            period_threshold=getattr(punctuation, "period_threshold", 1.0),
        )

        segmentation = getattr(config, "segmentation", None)
        self.configured_max_length = getattr(segmentation, "max_length", None)

        self.transcriber = transcriber or WhisperTranscriber(getattr(config, "asr", None))
        self.merger = ChunkMerger(getattr(config, "merge", None))
        self.srt_writer = SRTWriter()
        self.word_writer = WordTimingWriter()

        self._exporter = exporter
        self._initialized = False

        logger.info(
            f"Transcript service: locale={self.locale.identifier} "
            f"(cjk={self.locale.is_cjk}), censor={censor}"
        )

    # ── Setup ──

    def setup(self):
        """Prepare the speech engine. Required before any transcription."""
        self.transcriber.prepare()
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def is_model_ready(self) -> bool:
        return self.transcriber.is_ready()

    @property
    def exporter(self) -> AudioChunkExporter:
        if self._exporter is None:
            audio = getattr(self.config, "audio", None)
            self._exporter = AudioChunkExporter(FFmpegRangeExporter(
                sample_rate=getattr(audio, "sample_rate", 16000),
                channels=getattr(audio, "channels", 1),
            ))
        return self._exporter

    def effective_max_length(self, max_length: Optional[int] = None) -> int:
        return max_length or self.configured_max_length or self.locale.default_max_length

    # ── Entry points ──

    def transcribe_to_text(self, source: AudioSource) -> str:
        """Transcribe to plain text (no punctuation restoration)."""
        tokens = list(self._stream_tokens(source))
        self._check_not_empty(tokens)
        return "".join(tok.text for tok in tokens).strip()

    def transcribe_to_subtitles(self, source: AudioSource,
                                max_length: Optional[int] = None) -> str:
        tokens = list(self._stream_tokens(source))
        return self._render_srt(tokens, max_length)

    def transcribe_to_subtitles_with_progress(
        self,
        source: AudioSource,
        max_length: Optional[int] = None,
        include_word_timings: bool = False
    ) -> Iterator[ProgressEvent]:
        """
        Single-pass transcription reporting progress by audio position.

        Progress is capped below 1.0 until the SRT has been rendered. With
        include_word_timings the final event also carries the JSON.
        """
        self._require_initialized()
        duration = source.duration
        logger.info(f"Audio duration for SRT with progress: {duration:.1f}s")

        yield ProgressEvent(0.0, 0.0, duration)

        tokens: List[TimedTextToken] = []
        last_reported = 0.0
        for token in self._stream_tokens(source):
            tokens.append(token)
            if token.has_finite_time and token.end > last_reported:
                last_reported = token.end
                fraction = last_reported / duration if duration > 0 else 0.0
                yield ProgressEvent(min(fraction, self.progress_cap),
                                    last_reported, duration)

        if include_word_timings:
            srt_content, words_json = self._render_with_word_timings(tokens, max_length)
        else:
            srt_content, words_json = self._render_srt(tokens, max_length), None

        yield ProgressEvent(1.0, duration, duration, is_complete=True,
                            srt_content=srt_content, word_timings_json=words_json)

    def transcribe_to_subtitles_with_word_timings(
        self,
        source: AudioSource,
        max_length: Optional[int] = None
    ) -> Tuple[str, str]:
        """
        Returns:
            (SRT content, JSON word timings)
        """
        tokens = list(self._stream_tokens(source))
        return self._render_with_word_timings(tokens, max_length)

    def transcribe_to_subtitles_chunked_with_progress(
        self,
        source: AudioSource,
        max_length: Optional[int] = None,
        chunk_duration: Optional[float] = None,
        overlap: Optional[float] = None
    ) -> Iterator[ProgressEvent]:
        """
        Parallel chunked transcription for long audio.

        Audio shorter than min_chunked_duration (10 minutes by default)
        goes through the single-pass path instead. Exported chunk files
        are removed on every exit path, including the consumer closing
        the generator early.
        """
        self._require_initialized()
        chunk_duration = chunk_duration or self.chunk_duration
        overlap = self.overlap if overlap is None else overlap

        duration = source.duration
        if not math.isfinite(duration) or duration <= 0:
            raise InvalidDuration(duration)

        logger.info(f"Audio duration: {duration:.1f}s, evaluating chunked vs single pass")

        if duration < self.min_chunked_duration:
            logger.info(
                f"Audio < {self.min_chunked_duration:.0f}s, using single-pass processing"
            )
            yield from self.transcribe_to_subtitles_with_progress(source, max_length)
            return

        yield ProgressEvent(0.0, 0.0, duration)

        chunks = self.exporter.export(source, duration, chunk_duration, overlap)

        worker = ChunkTranscriptionWorker(
            self.transcriber,
            self.locale.identifier,
            censor=self.censor,
            restore_punctuation=self.locale.is_cjk and self.restore_punctuation,
            max_segment_length=self.effective_max_length(max_length),
            progress_interval=self.chunk_report_interval,
            restorer=self.restorer,
        )
        scheduler = ParallelTranscriptionScheduler(
            worker,
            max_concurrency=self.max_concurrency,
            concurrency_limit=self.concurrency_limit,
            progress_cap=self.progress_cap,
        )

        updates: "queue.Queue[float]" = queue.Queue()
        cancel = threading.Event()
        runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="chunk-scheduler")

        try:
            future = runner.submit(scheduler.run, chunks, updates.put, cancel)

            while True:
                try:
                    overall = updates.get(timeout=0.1)
                except queue.Empty:
                    if future.done():
                        break
                    continue
                yield ProgressEvent(overall, overall * duration, duration)

            # Updates queued between the last poll and completion
            while not updates.empty():
                overall = updates.get_nowait()
                yield ProgressEvent(overall, overall * duration, duration)

            chunk_results = future.result()
        finally:
            cancel.set()
            runner.shutdown(wait=False)
            self.exporter.cleanup(chunks)

        merged = self.merger.merge(chunk_results)
        if not merged:
            raise EmptyTranscript()

        srt_content = self.srt_writer.format(merged)

        preview = self.srt_writer.write_preview(merged, max_entries=5)
        if preview:
            logger.info(f"Preview:\n{preview}")

        yield ProgressEvent(1.0, duration, duration, is_complete=True,
                            srt_content=srt_content)

    # ── Helpers ──

    def _require_initialized(self):
        if not self._initialized:
            raise NotInitialized(
                "Transcriber not initialized. Call setup() first."
            )

    def _stream_tokens(self, source: AudioSource) -> Iterator[TimedTextToken]:
        """Stream finite-timed (or untimed) tokens for the whole source."""
        self._require_initialized()
        session = self.transcriber.open_session(self.locale.identifier, self.censor)

        try:
            for token in session.transcribe(source.path):
                if token.time_range is not None and not token.has_finite_time:
                    continue
                yield token
        except PodscribeError:
            raise
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise TranscriptionFailed(f"Transcription failed: {e}") from e

    @staticmethod
    def _check_not_empty(tokens: List[TimedTextToken]):
        if not any(tok.text.strip() for tok in tokens):
            raise EmptyTranscript()

    def _prepare_tokens(self, tokens: List[TimedTextToken]) -> List[TimedTextToken]:
        self._check_not_empty(tokens)
        if self.locale.is_cjk and self.restore_punctuation:
            tokens = self.restorer.restore(tokens)
        return tokens

    def _segmenter(self, max_length: Optional[int]) -> TranscriptSegmenter:
        return TranscriptSegmenter(
            is_cjk=self.locale.is_cjk,
            max_length=self.effective_max_length(max_length),
            language=self.locale.language,
        )

    def _render_srt(self, tokens: List[TimedTextToken],
                    max_length: Optional[int]) -> str:
        tokens = self._prepare_tokens(tokens)
        segments = self._segmenter(max_length).split_into_segments(tokens)
        if not segments:
            raise EmptyTranscript("Transcription produced no timed content.")

        logger.info(f"Segmented transcript into {len(segments)} subtitles")
        return self.srt_writer.format(segments)

    def _render_with_word_timings(self, tokens: List[TimedTextToken],
                                  max_length: Optional[int]) -> Tuple[str, str]:
        tokens = self._prepare_tokens(tokens)
        segmenter = self._segmenter(max_length)

        segments = segmenter.split_into_segments(tokens)
        if not segments:
            raise EmptyTranscript("Transcription produced no timed content.")
        records = segmenter.extract_segments_with_word_timings(tokens)

        logger.info(
            f"Segmented transcript into {len(segments)} subtitles "
            f"({len(records)} with word timings)"
        )
        return self.srt_writer.format(segments), self.word_writer.format(records)
