"""
ASR Worker — Speech-to-text capability using Faster-Whisper.

Defines the timed token that flows through the rest of the pipeline and the
two-level interface the pipeline consumes:

  - Transcriber: owns model assets, prepared once per service
  - TranscriptionSession: one independent engine instance, opened per job

Sessions never share engine state, which is what lets chunk workers run
truly in parallel instead of queueing on a single model.
"""

import os
import math
import logging
import numpy as np
import soundfile as sf
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .exceptions import NotInitialized
from .locale_resolver import language_code

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


@dataclass(frozen=True)
class TimedTextToken:
    """A fragment of recognized text with an optional [start, end) range."""
    text: str
    time_range: Optional[Tuple[float, float]] = None

    @property
    def start(self) -> Optional[float]:
        return self.time_range[0] if self.time_range else None

    @property
    def end(self) -> Optional[float]:
        return self.time_range[1] if self.time_range else None

    @property
    def has_finite_time(self) -> bool:
        return (self.time_range is not None and
                math.isfinite(self.time_range[0]) and
                math.isfinite(self.time_range[1]))

    def __repr__(self):
        if self.time_range is None:
            return f"TimedTextToken({self.text!r})"
        return (f"TimedTextToken({self.text!r}, "
                f"{self.time_range[0]:.2f}–{self.time_range[1]:.2f}s)")


class TranscriptionSession(ABC):
    """A single, unshared speech-to-text engine instance."""

    @abstractmethod
    def transcribe(self, audio_path: Path) -> Iterator[TimedTextToken]:
        """
        Stream timed tokens for one audio resource, in emission order.

        Raises:
            Any exception from the engine; callers wrap it.
        """


class Transcriber(ABC):
    """Factory for transcription sessions."""

    @abstractmethod
    def prepare(self):
        """Make model assets available. Must run before open_session()."""

    @abstractmethod
    def is_ready(self) -> bool:
        """Whether prepare() has completed."""

    @abstractmethod
    def open_session(self, locale: str, censor: bool = False) -> TranscriptionSession:
        """
        Create a fresh session for one job.

        Raises:
            NotInitialized: If prepare() has not run.
        """


class WhisperTranscriber(Transcriber):
    """
    Faster-Whisper backed transcriber.

    prepare() resolves the model to a local directory (downloading it if
    needed) so that every session can load its own WhisperModel offline.
    """

    def __init__(self, config):
        self.model_size = getattr(config, "model", "small")
        self.device = getattr(config, "device", "cpu")
        self.compute_type = getattr(config, "compute_type", "int8")
        self.beam_size = getattr(config, "beam_size", 3)
        self.word_timestamps = getattr(config, "word_timestamps", True)
        self.no_speech_threshold = getattr(config, "no_speech_threshold", 0.6)
        self.initial_prompt = getattr(config, "initial_prompt", None)

        # Thread count: 0 = auto-detect
        raw_threads = getattr(config, "threads", 0)
        if raw_threads <= 0:
            self.cpu_threads = os.cpu_count() or 4
        else:
            self.cpu_threads = raw_threads

        self._model_path: Optional[str] = None

    def prepare(self):
        if self._model_path is not None:
            return

        if os.path.isdir(self.model_size):
            self._model_path = self.model_size
        else:
            from faster_whisper import download_model

            logger.info(f"Resolving Faster-Whisper model '{self.model_size}'...")
            self._model_path = download_model(self.model_size)

        logger.info(f"Whisper model ready at {self._model_path}")

    def is_ready(self) -> bool:
        return self._model_path is not None

    def open_session(self, locale: str, censor: bool = False) -> "WhisperSession":
        if self._model_path is None:
            raise NotInitialized(
                "Transcriber not initialized. Call setup() first."
            )
        return WhisperSession(self, locale, censor)


class WhisperSession(TranscriptionSession):
    """One WhisperModel instance bound to a locale."""

    def __init__(self, owner: WhisperTranscriber, locale: str, censor: bool):
        self._owner = owner
        self.locale = locale
        self.language = language_code(locale) or None
        self.censor = censor
        self._model = None

    def _load_model(self):
        if self._model is not None:
            return

        from faster_whisper import WhisperModel

        owner = self._owner
        logger.debug(
            f"Loading session model (compute_type={owner.compute_type}, "
            f"threads={owner.cpu_threads})"
        )
        self._model = WhisperModel(
            owner._model_path,
            device=owner.device,
            compute_type=owner.compute_type,
            cpu_threads=owner.cpu_threads,
        )

    def _read_audio(self, audio_path: Path):
        """Load 16 kHz audio as float32 samples; other rates are left to Whisper."""
        info = sf.info(str(audio_path))
        if info.samplerate != WHISPER_SAMPLE_RATE:
            return str(audio_path)

        audio, _ = sf.read(str(audio_path), dtype="float32")
        if audio.ndim > 1:
            audio = np.mean(audio, axis=1)
        return audio

    def transcribe(self, audio_path: Path) -> Iterator[TimedTextToken]:
        self._load_model()
        owner = self._owner

        if self.censor:
            logger.debug("Censor flag set; Whisper output is passed through as-is")

        segments_iter, info = self._model.transcribe(
            self._read_audio(audio_path),
            language=self.language,
            beam_size=owner.beam_size,
            word_timestamps=owner.word_timestamps,
            vad_filter=False,
            condition_on_previous_text=False,
            no_speech_threshold=owner.no_speech_threshold,
            initial_prompt=owner.initial_prompt,
        )
        logger.debug(f"Session language: {info.language} ({self.locale})")

        for seg in segments_iter:
            if owner.word_timestamps and seg.words:
                for word in seg.words:
                    yield TimedTextToken(word.word, (word.start, word.end))
            elif seg.text.strip():
                # No word timing: the whole segment becomes one token
                yield TimedTextToken(seg.text, (seg.start, seg.end))
