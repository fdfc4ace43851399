import math
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Dict, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

class QualityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ORIGINAL = "original"

    @property
    def profile(self) -> "QualityProfile":
        return QUALITY_PROFILES[self]

class QualityProfile(BaseModel):
    """Encoder targets for one quality tier."""
    model_config = ConfigDict(frozen=True)

    video_bit_rate: int = Field(gt=0)
    audio_bit_rate: int = Field(gt=0)
    max_dimension: Optional[int] = Field(default=None, gt=0)  # None = unbounded
    passthrough: bool = False
    size_ratio: float = Field(default=1.0, gt=0.0, le=1.0)

# ORIGINAL never re-encodes; its bit rates are kept for completeness only.
QUALITY_PROFILES: Dict[QualityTier, QualityProfile] = {
    QualityTier.LOW: QualityProfile(
        video_bit_rate=1_000_000, audio_bit_rate=64_000, max_dimension=720, size_ratio=0.3
    ),
    QualityTier.MEDIUM: QualityProfile(
        video_bit_rate=2_500_000, audio_bit_rate=128_000, max_dimension=1080, size_ratio=0.5
    ),
    QualityTier.HIGH: QualityProfile(
        video_bit_rate=5_000_000, audio_bit_rate=192_000, max_dimension=1920, size_ratio=0.7
    ),
    QualityTier.ORIGINAL: QualityProfile(
        video_bit_rate=15_000_000, audio_bit_rate=256_000, max_dimension=None,
        passthrough=True, size_ratio=1.0
    ),
}

def estimate_output_size(input_bytes: int, tier: QualityTier) -> int:
    """Rough output size guess shown before compressing."""
    return int(input_bytes * tier.profile.size_ratio)

class TrackKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"

class PipelineState(str, Enum):
    IDLE = "IDLE"
    CONFIGURING = "CONFIGURING"
    RUNNING = "RUNNING"
    FINALIZING = "FINALIZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.CANCELLED)

class FrameSize(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: float = Field(ge=0)
    height: float = Field(ge=0)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

class DisplayTransform(BaseModel):
    """Affine display matrix [a b; c d] plus translation, as stored in the container."""
    model_config = ConfigDict(frozen=True)

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    tx: float = 0.0
    ty: float = 0.0

    @classmethod
    def identity(cls) -> "DisplayTransform":
        return cls()

    @classmethod
    def from_rotation(cls, degrees: int) -> "DisplayTransform":
        """Clockwise rotation in multiples of 90 degrees."""
        degrees = int(degrees) % 360
        if degrees % 90 != 0:
            raise ValueError(f"Unsupported rotation {degrees}, must be a multiple of 90")
        radians = math.radians(degrees)
        cos = round(math.cos(radians))
        sin = round(math.sin(radians))
        return cls(a=cos, b=sin, c=-sin, d=cos)

    def apply(self, width: float, height: float) -> Tuple[float, float]:
        """Maps a size vector through the matrix; translation does not affect sizes."""
        return (self.a * width + self.c * height, self.b * width + self.d * height)

    @property
    def is_mirrored(self) -> bool:
        """A negative determinant means the matrix flips the picture."""
        return self.a * self.d - self.b * self.c < 0

    @property
    def rotation(self) -> int:
        """Clockwise rotation in degrees, measured after undoing a horizontal flip."""
        a, b = (-self.a, -self.b) if self.is_mirrored else (self.a, self.b)
        return int(round(math.degrees(math.atan2(b, a)))) % 360

    @property
    def swaps_axes(self) -> bool:
        return self.rotation in (90, 270)

class SourceAsset(BaseModel):
    """Read-only description of the input container."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    path: Path
    duration: Fraction
    natural_size: FrameSize
    transform: DisplayTransform = Field(default_factory=DisplayTransform.identity)
    has_audio: bool = False
    frame_rate: Optional[Fraction] = None
    video_codec: str = "unknown"
    audio_codec: Optional[str] = None
    size_bytes: int = 0

    @property
    def duration_seconds(self) -> float:
        return float(self.duration)

class TargetGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int
    height: int

    @field_validator("width", "height")
    @classmethod
    def validate_even(cls, v: int) -> int:
        if v <= 0 or v % 2 != 0:
            raise ValueError(f"Dimension {v} must be a positive even integer")
        return v

    @property
    def longest_side(self) -> int:
        return max(self.width, self.height)

class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    fraction: float = Field(ge=0.0, le=1.0)
    message: str

class CompressionPlan(BaseModel):
    """What compress() would do for a source at a given tier."""
    asset: SourceAsset
    tier: QualityTier
    geometry: TargetGeometry
    passthrough: bool
    estimated_size_bytes: int
