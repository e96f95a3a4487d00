"""
Podscribe — Chunked Transcription Package

Pipeline for turning long speech recordings into subtitles:
  - locale_resolver: Language tag → locale and segmentation defaults
  - audio_extractor: FFmpeg-based audio extraction and chunk export
  - asr_worker: Speech-to-text sessions via Faster-Whisper
  - chunk_worker: Per-chunk transcription with throttled progress
  - scheduler: Bounded parallel pool over chunks
  - merger: Overlap de-duplication across chunk boundaries
  - punctuation: Gap-based punctuation restoration for CJK
  - segmenter: Sentence → clause → word subtitle segmentation
  - srt_writer: SRT and word-timing JSON output
  - orchestrator: Public TranscriptService entry points
"""
