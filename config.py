"""
Configuration loader for Podscribe.
Loads from config.yaml and allows CLI argument overrides.
"""

import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from podscribe.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


@dataclass
class AudioConfig:
    sample_rate: int = 16000
    channels: int = 1


@dataclass
class ASRConfig:
    model: str = "small"
    device: str = "cpu"
    compute_type: str = "int8"
    beam_size: int = 3
    threads: int = 0  # 0 = auto-detect CPU cores
    word_timestamps: bool = True
    no_speech_threshold: float = 0.6
    initial_prompt: Optional[str] = None


@dataclass
class TranscriptionConfig:
    language: str = "en"
    censor: bool = False


@dataclass
class ChunkingConfig:
    chunk_duration: float = 300.0
    overlap: float = 2.0
    min_chunked_duration: float = 600.0  # below this, transcribe in one pass
    max_concurrency: int = 0             # 0 = clamp(chunks, 1, min(cpus // 2, limit))
    concurrency_limit: int = 4


@dataclass
class SegmentationConfig:
    max_length: Optional[int] = None  # None = locale default (18 CJK / 40 other)


@dataclass
class MergeConfig:
    dedup_margin: float = 1.0


@dataclass
class ProgressConfig:
    chunk_report_interval: float = 0.5
    cap: float = 0.99


@dataclass
class PunctuationConfig:
    enabled: bool = True
    comma_threshold: float = 0.5
    period_threshold: float = 1.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    """Top-level application configuration."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    asr: ASRConfig = field(default_factory=ASRConfig)
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)
    progress: ProgressConfig = field(default_factory=ProgressConfig)
    punctuation: PunctuationConfig = field(default_factory=PunctuationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def update_from_args(self, args):
        """Override config values from CLI arguments."""
        if getattr(args, "model", None):
            self.asr.model = args.model
        if getattr(args, "language", None):
            self.transcription.language = args.language
        if getattr(args, "censor", False):
            self.transcription.censor = True
        if getattr(args, "max_length", None):
            self.segmentation.max_length = args.max_length
        if getattr(args, "chunk_duration", None):
            self.chunking.chunk_duration = args.chunk_duration
        if getattr(args, "overlap", None) is not None:
            self.chunking.overlap = args.overlap
        if getattr(args, "max_concurrency", None):
            self.chunking.max_concurrency = args.max_concurrency


def _dict_to_dataclass(cls, data: dict):
    """Convert a dict to a dataclass, ignoring unknown keys."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Section for {cls.__name__} must be a mapping, got {type(data).__name__}"
        )
    field_names = {f.name for f in cls.__dataclass_fields__.values()}
    unknown = set(data) - field_names
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    filtered = {k: v for k, v in data.items() if k in field_names}
    return cls(**filtered)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.
    Falls back to defaults if file is missing.

    Raises:
        ConfigurationError: If the file is not valid YAML.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"Config file not found at {path}, using defaults.")
        return AppConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Top level of {path} must be a mapping, got {type(raw).__name__}"
        )

    config = AppConfig(
        audio=_dict_to_dataclass(AudioConfig, raw.get("audio")),
        asr=_dict_to_dataclass(ASRConfig, raw.get("asr")),
        transcription=_dict_to_dataclass(TranscriptionConfig, raw.get("transcription")),
        chunking=_dict_to_dataclass(ChunkingConfig, raw.get("chunking")),
        segmentation=_dict_to_dataclass(SegmentationConfig, raw.get("segmentation")),
        merge=_dict_to_dataclass(MergeConfig, raw.get("merge")),
        progress=_dict_to_dataclass(ProgressConfig, raw.get("progress")),
        punctuation=_dict_to_dataclass(PunctuationConfig, raw.get("punctuation")),
        logging=_dict_to_dataclass(LoggingConfig, raw.get("logging")),
    )

    logger.info(f"Configuration loaded from {path}")
    return config
