"""
Exceptions raised by the transcription pipeline.

Every error that can end a transcription job derives from PodscribeError,
so callers can catch the whole family in one place while still telling the
failure kinds apart.
"""


class PodscribeError(Exception):
    """Base class for all pipeline errors."""
    pass


class ConfigurationError(PodscribeError):
    """Raised when the configuration file cannot be parsed."""
    pass


class InvalidDuration(PodscribeError):
    """Raised when the audio duration is non-finite or not positive."""

    def __init__(self, duration):
        self.duration = duration
        super().__init__(f"Invalid audio duration: {duration!r}")


class ExportFailed(PodscribeError):
    """Raised when an audio chunk could not be materialized."""

    def __init__(self, message: str, chunk_index: int = None):
        self.chunk_index = chunk_index
        super().__init__(message)


class TranscriptionFailed(PodscribeError):
    """Raised when the speech-to-text engine fails mid-stream."""

    def __init__(self, message: str, chunk_index: int = None):
        self.chunk_index = chunk_index
        super().__init__(message)


class EmptyTranscript(PodscribeError):
    """Raised when transcription finished without recognizing any text."""

    def __init__(self, message: str = None):
        super().__init__(
            message or
            "Transcription produced no content. "
            "The audio may be silent or in an unsupported format."
        )


class NotInitialized(PodscribeError):
    """Raised when a transcription session is requested before setup()."""
    pass


class TranscriptionCancelled(PodscribeError):
    """Raised when a running job is cancelled by its consumer."""
    pass
