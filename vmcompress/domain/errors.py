from enum import Enum
from typing import Optional
from vmcompress.domain.models import TrackKind

class CompressionErrorKind(str, Enum):
    NO_VIDEO_TRACK = "NO_VIDEO_TRACK"
    ENCODER_CONFIGURATION_FAILED = "ENCODER_CONFIGURATION_FAILED"
    ENCODING_FAILED = "ENCODING_FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

class CompressionError(Exception):
    """Base class for every failure surfaced by compress()."""

    kind: CompressionErrorKind = CompressionErrorKind.UNKNOWN
    description: str = "Unknown compression error"

    def __init__(self, detail: Optional[str] = None, cause: Optional[BaseException] = None):
        self.detail = detail
        self.cause = cause
        super().__init__(f"{self.description}: {detail}" if detail else self.description)

class NoVideoTrackError(CompressionError):
    kind = CompressionErrorKind.NO_VIDEO_TRACK
    description = "Video file has no video track"

class EncoderConfigurationError(CompressionError):
    kind = CompressionErrorKind.ENCODER_CONFIGURATION_FAILED
    description = "Failed to create video export session"

class EncodingFailedError(CompressionError):
    kind = CompressionErrorKind.ENCODING_FAILED
    description = "Video compression failed"

class CompressionCancelled(CompressionError):
    kind = CompressionErrorKind.CANCELLED
    description = "Compression was cancelled"

class UnknownCompressionError(CompressionError):
    kind = CompressionErrorKind.UNKNOWN
    description = "Unknown compression error"

class TrackError(Exception):
    """A reader or writer on one track entered an error state."""

    def __init__(self, track: TrackKind, cause: BaseException):
        self.track = track
        self.cause = cause
        super().__init__(f"{track.value} track failed: {cause}")
