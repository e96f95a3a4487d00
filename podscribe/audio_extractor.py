"""
Audio Extractor — FFmpeg-based audio extraction and chunk export.

Two jobs live here:
  - AudioExtractor converts any media file into 16kHz mono 16-bit PCM WAV,
    the format every transcription session reads.
  - AudioChunkExporter partitions a long recording into overlapping time
    windows and materializes one standalone WAV file per window.
"""

import math
import shutil
import subprocess
import tempfile
import logging
import soundfile as sf
from concurrent.futures import ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from .exceptions import ExportFailed, InvalidDuration

logger = logging.getLogger(__name__)

CHUNK_DIR_PREFIX = "podscribe_chunks_"


@dataclass(frozen=True)
class AudioSource:
    """Decodable audio plus the facts the pipeline needs about it."""
    path: Path
    duration: float
    sample_rate: int

    @classmethod
    def from_file(cls, audio_path: Path) -> "AudioSource":
        """Probe a WAV/FLAC/OGG file with soundfile."""
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Audio file not found: {audio_path}")

        info = sf.info(str(audio_path))
        duration = info.frames / info.samplerate if info.samplerate > 0 else 0.0
        return cls(path=audio_path, duration=duration, sample_rate=info.samplerate)


@dataclass(frozen=True)
class AudioChunk:
    """One exported time window of the source, on the global timeline."""
    index: int
    path: Path
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def __repr__(self):
        return (f"AudioChunk#{self.index}({self.start_time:.2f}–"
                f"{self.end_time:.2f}s, {Path(self.path).name})")


def _verify_ffmpeg():
    """Check that FFmpeg is available on the system PATH."""
    try:
        result = subprocess.run(
            ["ffmpeg", "-version"],
            capture_output=True, text=True, timeout=10
        )
        if result.returncode != 0:
            raise RuntimeError("FFmpeg returned non-zero exit code")
        version_line = result.stdout.split("\n")[0]
        logger.debug(f"FFmpeg found: {version_line}")
    except FileNotFoundError:
        raise RuntimeError(
            "FFmpeg not found. Please install FFmpeg and add it to PATH.\n"
            "Download: https://ffmpeg.org/download.html"
        )


class AudioExtractor:
    """Extracts and downsamples audio from media files using FFmpeg."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        _verify_ffmpeg()

    def extract(self, media_path: Path) -> Path:
        """
        Extract audio from a media file.

        Args:
            media_path: Path to the input audio or video file.

        Returns:
            Path to the extracted temporary WAV file.

        Raises:
            RuntimeError: If FFmpeg extraction fails.
            FileNotFoundError: If the media file doesn't exist.
        """
        media_path = Path(media_path)
        if not media_path.exists():
            raise FileNotFoundError(f"Media file not found: {media_path}")

        # Create temp file in system temp directory
        output = Path(tempfile.mktemp(suffix=".wav", prefix="podscribe_"))

        cmd = [
            "ffmpeg",
            "-i", str(media_path),
            "-vn",                          # No video
            "-acodec", "pcm_s16le",         # 16-bit PCM
            "-ar", str(self.sample_rate),   # Sample rate
            "-ac", str(self.channels),      # Mono
            "-loglevel", "error",
            "-y",
            str(output)
        ]

        logger.info(f"Extracting audio: {media_path.name} → {output.name}")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        result = subprocess.run(cmd, capture_output=True, text=True)

        if result.returncode != 0:
            raise RuntimeError(
                f"FFmpeg audio extraction failed:\n{result.stderr}"
            )

        file_size_mb = output.stat().st_size / (1024 * 1024)
        logger.info(f"Audio extracted: {file_size_mb:.1f} MB ({output})")

        return output

    @staticmethod
    def cleanup(audio_path: Path):
        """Remove the temporary audio file."""
        audio_path = Path(audio_path)
        if audio_path.exists():
            audio_path.unlink()
            logger.debug(f"Cleaned up temp audio: {audio_path}")


class FFmpegRangeExporter:
    """Cuts a [start, end) range out of a source into its own WAV file."""

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        _verify_ffmpeg()

    def export_range(self, source: AudioSource, start: float, end: float,
                     dest: Path) -> Path:
        cmd = [
            "ffmpeg",
            "-ss", f"{start:.3f}",
            "-t", f"{end - start:.3f}",
            "-i", str(source.path),
            "-vn",
            "-acodec", "pcm_s16le",
            "-ar", str(self.sample_rate),
            "-ac", str(self.channels),
            "-loglevel", "error",
            "-y",
            str(dest)
        ]
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise ExportFailed(
                f"FFmpeg chunk export failed ({start:.1f}–{end:.1f}s):\n"
                f"{result.stderr}"
            )
        return Path(dest)


def compute_chunk_ranges(
    total_duration: float,
    chunk_duration: float = 300.0,
    overlap: float = 2.0
) -> List[Tuple[int, float, float]]:
    """
    Compute overlapping windows covering [0, total_duration).

    Each window starts `overlap` seconds before the previous one ended;
    the last window is clipped to total_duration.

    Returns:
        List of (index, start, end) tuples.

    Raises:
        InvalidDuration: If total_duration is non-finite or <= 0.
        ValueError: If chunk_duration/overlap would not make progress.
    """
    if not math.isfinite(total_duration) or total_duration <= 0:
        raise InvalidDuration(total_duration)
    if not chunk_duration > 0:
        raise ValueError(f"chunk_duration must be positive, got {chunk_duration}")
    if not 0 <= overlap < chunk_duration:
        raise ValueError(
            f"overlap must be in [0, chunk_duration), got {overlap}"
        )

    ranges = []
    start = 0.0
    index = 0
    while start < total_duration:
        end = min(start + chunk_duration, total_duration)
        ranges.append((index, start, end))
        if end >= total_duration:
            break
        start = end - overlap
        index += 1

    return ranges


class AudioChunkExporter:
    """
    Materializes chunk files for a long recording.

    All windows are exported concurrently: the work is I/O bound, so
    there is no cap. The first failure aborts the batch and every file
    already written is removed before the error propagates.
    """

    def __init__(self, range_exporter=None):
        self.range_exporter = range_exporter or FFmpegRangeExporter()

    def export(
        self,
        source: AudioSource,
        total_duration: float,
        chunk_duration: float = 300.0,
        overlap: float = 2.0
    ) -> List[AudioChunk]:
        """
        Export every chunk of the source.

        Returns:
            AudioChunk list ordered by index.

        Raises:
            InvalidDuration: Before any export, for a bad duration.
            ExportFailed: If any chunk could not be exported.
        """
        ranges = compute_chunk_ranges(total_duration, chunk_duration, overlap)
        work_dir = Path(tempfile.mkdtemp(prefix=CHUNK_DIR_PREFIX))

        logger.info(
            f"Exporting {len(ranges)} chunks "
            f"(chunk={chunk_duration:.0f}s, overlap={overlap:.1f}s) → {work_dir}"
        )

        chunks: List[AudioChunk] = []
        executor = ThreadPoolExecutor(max_workers=len(ranges),
                                      thread_name_prefix="chunk-export")
        try:
            futures = {
                executor.submit(
                    self.range_exporter.export_range,
                    source, start, end, work_dir / f"chunk_{index}.wav"
                ): (index, start, end)
                for index, start, end in ranges
            }

            for future in as_completed(futures):
                index, start, end = futures[future]
                try:
                    path = future.result()
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    wait(futures)
                    logger.error(f"Export of chunk {index} failed: {e}")
                    if isinstance(e, ExportFailed):
                        e.chunk_index = index
                        raise
                    raise ExportFailed(
                        f"Failed to export chunk {index}: {e}", chunk_index=index
                    ) from e
                chunks.append(AudioChunk(index, Path(path), start, end))

        except BaseException:
            shutil.rmtree(work_dir, ignore_errors=True)
            raise
        finally:
            executor.shutdown(wait=False)

        chunks.sort(key=lambda c: c.index)
        logger.info(f"Exported {len(chunks)} chunks")
        return chunks

    @staticmethod
    def cleanup(chunks: List[AudioChunk]):
        """Remove chunk files and their private work directory."""
        for chunk in chunks:
            path = Path(chunk.path)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove chunk file {path}: {e}")

        for directory in {Path(chunk.path).parent for chunk in chunks}:
            if directory.name.startswith(CHUNK_DIR_PREFIX):
                shutil.rmtree(directory, ignore_errors=True)

        if chunks:
            logger.debug(f"Cleaned up {len(chunks)} chunk files")
