"""
Parallel Scheduler — Bounded worker pool over audio chunks.

Keeps at most C chunk transcriptions in flight, launching the next chunk
as soon as one finishes, and folds per-chunk progress into one overall,
monotonically non-decreasing fraction. Results come back in chunk order
no matter which job finishes first.
"""

import os
import time
import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from functools import partial
from typing import Callable, Dict, List, Optional

from .audio_extractor import AudioChunk
from .chunk_worker import ChunkSegment, ChunkTranscriptionWorker
from .exceptions import TranscriptionCancelled

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 4
PROGRESS_CAP = 0.99

# (overall fraction, 0.0–0.99) -> None
OverallProgressCallback = Optional[Callable[[float], None]]


def default_concurrency(
    chunk_count: int,
    cpu_count: Optional[int] = None,
    limit: int = DEFAULT_CONCURRENCY_LIMIT
) -> int:
    """clamp(chunk_count, 1, min(cpu_count // 2, limit))"""
    if cpu_count is None:
        cpu_count = os.cpu_count() or 1
    return max(min(chunk_count, cpu_count // 2, limit), 1)


class ChunkProgressTracker:
    """
    Shared progress state for a batch of chunks.

    Every update is serialized behind one lock, and the update callback
    runs while the lock is held, so listeners observe overall values in
    the order they were computed.
    """

    def __init__(self, total_chunks: int, cap: float = PROGRESS_CAP,
                 on_update: OverallProgressCallback = None):
        self.total_chunks = max(total_chunks, 1)
        self.cap = cap
        self._on_update = on_update
        self._lock = threading.Lock()
        self._progress: Dict[int, float] = {}
        self._overall = 0.0

    def update(self, chunk_index: int, fraction: float) -> float:
        """Record a chunk's progress and return the overall fraction."""
        fraction = min(max(fraction, 0.0), 1.0)
        with self._lock:
            previous = self._progress.get(chunk_index, 0.0)
            self._progress[chunk_index] = max(previous, fraction)

            mean = sum(self._progress.values()) / self.total_chunks
            self._overall = max(self._overall, min(mean, self.cap))

            if self._on_update:
                self._on_update(self._overall)
            return self._overall

    @property
    def overall(self) -> float:
        with self._lock:
            return self._overall

    def chunk_progress(self, chunk_index: int) -> float:
        with self._lock:
            return self._progress.get(chunk_index, 0.0)


class ParallelTranscriptionScheduler:
    """
    Drives a ChunkTranscriptionWorker over many chunks.

    Usage:
        scheduler = ParallelTranscriptionScheduler(worker)
        per_chunk = scheduler.run(chunks, on_progress=print)

    Any failure fails the batch: the first error propagates, queued jobs
    are cancelled and running ones are abandoned with their results
    discarded.
    """

    def __init__(
        self,
        worker: ChunkTranscriptionWorker,
        max_concurrency: int = 0,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        progress_cap: float = PROGRESS_CAP,
        poll_interval: float = 0.1
    ):
        self.worker = worker
        self.max_concurrency = max_concurrency  # 0 = auto
        self.concurrency_limit = concurrency_limit
        self.progress_cap = progress_cap
        self.poll_interval = poll_interval

    def concurrency_for(self, chunk_count: int) -> int:
        if self.max_concurrency > 0:
            return max(min(chunk_count, self.max_concurrency), 1)
        return default_concurrency(chunk_count, limit=self.concurrency_limit)

    def run(
        self,
        chunks: List[AudioChunk],
        on_progress: OverallProgressCallback = None,
        cancel_event: Optional[threading.Event] = None
    ) -> List[List[ChunkSegment]]:
        """
        Transcribe all chunks.

        Args:
            chunks: Chunks ordered by index.
            on_progress: Called from worker threads with overall progress.
            cancel_event: When set, the batch stops and raises
                TranscriptionCancelled. Running jobs stop at their next
                token, as they do when any chunk fails.

        Returns:
            One ChunkSegment list per chunk, in chunk order.
        """
        if not chunks:
            return []

        concurrency = self.concurrency_for(len(chunks))
        tracker = ChunkProgressTracker(len(chunks), self.progress_cap, on_progress)
        results: List[Optional[List[ChunkSegment]]] = [None] * len(chunks)
        start_time = time.monotonic()

        logger.info(
            f"Transcribing {len(chunks)} chunks with concurrency limit {concurrency}"
        )

        executor = ThreadPoolExecutor(max_workers=concurrency,
                                      thread_name_prefix="chunk-asr")
        # Set on failure or caller cancellation; running jobs poll it per token
        stop = threading.Event()
        in_flight = {}
        launched = 0

        def launch(position: int):
            future = executor.submit(
                self.worker.transcribe_chunk,
                chunks[position],
                partial(tracker.update, position),
                stop
            )
            in_flight[future] = position

        try:
            while launched < concurrency:
                launch(launched)
                launched += 1

            while in_flight:
                done, _ = wait(in_flight, timeout=self.poll_interval,
                               return_when=FIRST_COMPLETED)

                if cancel_event is not None and cancel_event.is_set():
                    raise TranscriptionCancelled("Chunk transcription cancelled")

                for future in done:
                    position = in_flight.pop(future)
                    results[position] = future.result()
                    logger.debug(
                        f"Chunk {chunks[position].index} done "
                        f"({len(results[position])} segments)"
                    )

                    if launched < len(chunks):
                        launch(launched)
                        launched += 1

        except BaseException as e:
            stop.set()
            for future in in_flight:
                future.cancel()
            if not isinstance(e, TranscriptionCancelled):
                logger.error(f"Chunk batch failed: {e}")
            raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            f"All {len(chunks)} chunks transcribed in "
            f"{time.monotonic() - start_time:.1f}s"
        )
        return results
