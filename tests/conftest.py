"""
Shared fakes: a scripted transcriber and an in-process range exporter,
so pipeline tests run without FFmpeg or Whisper models.
"""

import threading
import time
from pathlib import Path

import pytest

from podscribe.asr_worker import TimedTextToken, Transcriber, TranscriptionSession
from podscribe.exceptions import ExportFailed, NotInitialized


def words(*items):
    """Build tokens from (text, start, end) tuples; (text,) is untimed."""
    tokens = []
    for item in items:
        if len(item) == 1:
            tokens.append(TimedTextToken(item[0]))
        else:
            tokens.append(TimedTextToken(item[0], (item[1], item[2])))
    return tokens


class FakeSession(TranscriptionSession):
    def __init__(self, owner, locale, censor):
        self.owner = owner
        self.locale = locale
        self.censor = censor

    def transcribe(self, audio_path):
        key = Path(audio_path).name
        with self.owner.lock:
            self.owner.active += 1
            self.owner.peak_active = max(self.owner.peak_active, self.owner.active)
        try:
            if self.owner.delay:
                time.sleep(self.owner.delay)
            for token in self.owner.scripts.get(key, self.owner.default):
                if self.owner.token_delay:
                    time.sleep(self.owner.token_delay)
                with self.owner.lock:
                    self.owner.consumed[key] = self.owner.consumed.get(key, 0) + 1
                yield token
            if key in self.owner.failures:
                raise self.owner.failures[key]
        finally:
            with self.owner.lock:
                self.owner.active -= 1


class FakeTranscriber(Transcriber):
    """
    Plays back scripted tokens keyed by audio file name.

    Tracks how many sessions ran at once so concurrency caps can be checked,
    and how many tokens each file has handed out.
    """

    def __init__(self, scripts=None, default=None, failures=None, delay=0.0,
                 token_delay=0.0):
        self.scripts = scripts or {}
        self.default = default or []
        self.failures = failures or {}
        self.delay = delay
        self.token_delay = token_delay
        self.consumed = {}
        self.ready = False
        self.sessions = []
        self.lock = threading.Lock()
        self.active = 0
        self.peak_active = 0

    def prepare(self):
        self.ready = True

    def is_ready(self):
        return self.ready

    def open_session(self, locale, censor=False):
        if not self.ready:
            raise NotInitialized("Transcriber not initialized. Call setup() first.")
        session = FakeSession(self, locale, censor)
        with self.lock:
            self.sessions.append(session)
        return session


class FakeRangeExporter:
    """Writes an empty placeholder file per range; can fail on chosen starts."""

    def __init__(self, fail_at=None):
        self.fail_at = set(fail_at or [])
        self.calls = []
        self.lock = threading.Lock()

    def export_range(self, source, start, end, dest):
        with self.lock:
            self.calls.append((start, end))
        if start in self.fail_at:
            raise ExportFailed(f"cannot cut {start}–{end}")
        Path(dest).write_bytes(b"")
        return Path(dest)


@pytest.fixture
def fake_transcriber():
    transcriber = FakeTranscriber()
    transcriber.prepare()
    return transcriber


@pytest.fixture
def range_exporter():
    return FakeRangeExporter()
