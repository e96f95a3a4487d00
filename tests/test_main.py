"""
Tests for the CLI entry point (audio extraction and engine faked).
"""

import json

import numpy as np
import pytest
import soundfile as sf

import main
from podscribe.orchestrator import TranscriptService

from conftest import FakeTranscriber, words


class FakeExtractor:
    """Stands in for FFmpeg: writes a short 16 kHz WAV next to the input."""

    instances = []

    def __init__(self, sample_rate=16000, channels=1):
        self.sample_rate = sample_rate
        self.cleaned = []
        FakeExtractor.instances.append(self)

    def extract(self, media_path):
        output = media_path.with_name("episode.wav")
        sf.write(str(output), np.zeros(self.sample_rate * 5, dtype="float32"),
                 self.sample_rate)
        return output

    def cleanup(self, audio_path):
        self.cleaned.append(audio_path)
        audio_path.unlink()


@pytest.fixture
def cli(monkeypatch, tmp_path):
    FakeExtractor.instances = []
    transcriber = FakeTranscriber(default=words(
        ("Hello", 0.0, 0.5), (" world.", 0.5, 1.0),
    ))

    def service_factory(language="en", censor=False, config=None):
        return TranscriptService(language, censor, config, transcriber=transcriber)

    monkeypatch.setattr(main, "AudioExtractor", FakeExtractor)
    monkeypatch.setattr(main, "TranscriptService", service_factory)
    monkeypatch.setattr(main, "setup_logging", lambda **kwargs: None)

    media = tmp_path / "episode.mp3"
    media.write_bytes(b"not really audio")
    return media


class TestParser:
    """Test argument parsing."""

    def test_defaults(self):
        args = main.build_parser().parse_args(["episode.mp3"])
        assert args.output is None
        assert args.language is None
        assert not args.word_timings

    def test_options(self):
        args = main.build_parser().parse_args([
            "episode.mp3", "-l", "zh-tw", "--max-length", "18",
            "--chunk-duration", "120", "--overlap", "1.5", "--censor", "-q",
        ])
        assert args.language == "zh-tw"
        assert args.max_length == 18
        assert args.chunk_duration == 120.0
        assert args.overlap == 1.5
        assert args.censor and args.quiet


class TestRun:
    """Test a full CLI run against the fakes."""

    def test_writes_srt(self, cli):
        args = main.build_parser().parse_args([str(cli), "-q"])
        output = main.run(args)

        assert output == cli.with_suffix(".srt")
        assert output.read_text(encoding="utf-8") == \
            "1\n00:00:00,000 --> 00:00:01,000\nHello world.\n\n"
        assert FakeExtractor.instances[0].cleaned

    def test_word_timings_file(self, cli, tmp_path):
        target = tmp_path / "out" / "subs.srt"
        args = main.build_parser().parse_args([str(cli), "-q", "-o", str(target),
                                               "--word-timings"])
        main.run(args)

        assert target.exists()
        data = json.loads(target.with_suffix(".words.json").read_text(encoding="utf-8"))
        assert data["segments"][0]["text"] == "Hello world."

    def test_missing_input_exits(self, tmp_path, monkeypatch):
        monkeypatch.setattr("sys.argv", ["podscribe", str(tmp_path / "missing.mp3")])
        with pytest.raises(SystemExit) as exc_info:
            main.main()
        assert exc_info.value.code == 1
