"""
Podscribe — CLI Entry Point

Usage:
    python main.py episode.mp3
    python main.py episode.mp3 -o subtitles.srt
    python main.py episode.m4a --language zh-tw --max-length 18
    python main.py episode.mp3 --word-timings
"""

import sys
import argparse
import logging
from pathlib import Path

from config import load_config
from podscribe.audio_extractor import AudioExtractor, AudioSource
from podscribe.exceptions import PodscribeError
from podscribe.orchestrator import TranscriptService


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging for the application."""
    log_format = (
        "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
    )
    date_format = "%H:%M:%S"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("huggingface_hub").setLevel(logging.WARNING)
    logging.getLogger("faster_whisper").setLevel(logging.WARNING)
    logging.getLogger("jieba").setLevel(logging.WARNING)


def print_banner():
    """Print the application banner."""
    banner = """
==========================================================
                     Podscribe

  Long-form speech → time-aligned subtitles
  Chunked parallel transcription  |  Faster-Whisper
==========================================================
"""
    print(banner)


def print_progress(fraction: float, current: float, total: float):
    """Console progress bar for a 0.0–1.0 fraction."""
    percent = int(fraction * 100)
    bar_width = 30
    filled = int(bar_width * percent / 100)
    bar = "#" * filled + "-" * (bar_width - filled)
    print(f"\r  [{bar}] {percent:3d}%  {current:7.1f}s / {total:.1f}s",
          end="", flush=True)
    if percent >= 100:
        print()  # Newline at completion


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="podscribe",
        description="Podscribe — Transcribe long speech recordings into SRT "
                    "subtitles with chunked parallel processing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  podscribe episode.mp3                       # Basic usage
  podscribe episode.mp3 -o my_subs.srt        # Custom output path
  podscribe episode.mp3 --language zh-tw      # Chinese (Taiwan)
  podscribe episode.mp3 --max-length 32       # Shorter subtitle lines
  podscribe episode.mp3 --word-timings        # Also write .words.json
        """
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Path to the input audio or video file"
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output SRT file path (default: same name as input with .srt extension)"
    )
    parser.add_argument(
        "-m", "--model",
        default=None,
        help="Whisper model size or local model directory (default: from config.yaml)"
    )
    parser.add_argument(
        "-l", "--language",
        default=None,
        help="Language tag, e.g. 'en', 'zh-tw', 'ja' (default: from config.yaml)"
    )
    parser.add_argument(
        "--max-length",
        type=int,
        default=None,
        help="Maximum characters per subtitle (default: 18 for CJK, 40 otherwise)"
    )
    parser.add_argument(
        "--chunk-duration",
        type=float,
        default=None,
        help="Seconds per chunk for long audio (default: 300)"
    )
    parser.add_argument(
        "--overlap",
        type=float,
        default=None,
        help="Seconds of overlap between adjacent chunks (default: 2)"
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Maximum chunks transcribed at once (default: auto)"
    )
    parser.add_argument(
        "--word-timings",
        action="store_true",
        help="Single-pass transcription that also writes per-word timings as JSON"
    )
    parser.add_argument(
        "--censor",
        action="store_true",
        help="Ask the speech engine to censor profanity where supported"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to custom config.yaml file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except the progress bar"
    )
    return parser


def run(args) -> Path:
    """Transcribe args.audio and write the outputs. Returns the SRT path."""
    output_path = args.output or args.audio.with_suffix(".srt")

    config = load_config(args.config)
    config.update_from_args(args)

    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file)

    if not args.quiet:
        print_banner()
        print(f"  Input:    {args.audio}")
        print(f"  Output:   {output_path}")
        print(f"  Model:    Faster-Whisper {config.asr.model} ({config.asr.compute_type})")
        print(f"  Language: {config.transcription.language}")
        print()

    extractor = AudioExtractor(
        sample_rate=config.audio.sample_rate,
        channels=config.audio.channels
    )
    audio_path = extractor.extract(args.audio)

    try:
        source = AudioSource.from_file(audio_path)
        service = TranscriptService(
            language=config.transcription.language,
            censor=config.transcription.censor,
            config=config
        )
        service.setup()
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if args.word_timings:
            events = service.transcribe_to_subtitles_with_progress(
                source,
                max_length=config.segmentation.max_length,
                include_word_timings=True,
            )
        else:
            events = service.transcribe_to_subtitles_chunked_with_progress(
                source,
                max_length=config.segmentation.max_length,
                chunk_duration=config.chunking.chunk_duration,
                overlap=config.chunking.overlap,
            )

        final = None
        for event in events:
            print_progress(event.progress, event.current_time_seconds,
                           event.total_duration_seconds)
            if event.is_complete:
                final = event

        output_path.write_text(final.srt_content, encoding="utf-8")

        if final.word_timings_json is not None:
            words_path = output_path.with_suffix(".words.json")
            words_path.write_text(final.word_timings_json, encoding="utf-8")
            if not args.quiet:
                print(f"  [OK] Word timings saved to: {words_path}")

        return output_path

    finally:
        # Always clean up temp audio
        extractor.cleanup(audio_path)


def main():
    args = build_parser().parse_args()

    # ── Validate input ──
    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}")
        sys.exit(1)

    try:
        output_path = run(args)
        if not args.quiet:
            print(f"\n  [OK] Subtitles saved to: {output_path}")

    except KeyboardInterrupt:
        print("\n\n  [WARN] Processing interrupted by user.")
        sys.exit(130)
    except PodscribeError as e:
        print(f"\n  [ERROR] {type(e).__name__}: {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        print(f"\n  [ERROR] File error: {e}")
        sys.exit(1)
    except RuntimeError as e:
        print(f"\n  [ERROR] Runtime error: {e}")
        sys.exit(1)
    except Exception as e:
        logging.exception("Unexpected error")
        print(f"\n  [ERROR] Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
