from pathlib import Path
from typing import Optional, Tuple
from pydantic import BaseModel, Field, field_validator
from vmcompress.domain.models import QualityTier

class PipelineConfig(BaseModel):
    temp_dir: Optional[Path] = Field(default=None)  # None = system temp dir
    queue_depth: int = Field(default=2, ge=1, le=2)
    progress_step: float = Field(default=0.05, gt=0.0, le=1.0)
    encode_range: Tuple[float, float] = (0.2, 0.9)
    poll_interval: float = Field(default=0.1, gt=0.0, le=5.0)

    @field_validator('encode_range')
    @classmethod
    def validate_range(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        start, end = v
        if not (0.0 <= start < end <= 1.0):
            raise ValueError(f"Invalid encode range {v}. Must satisfy 0 <= start < end <= 1.")
        return v

class EncoderConfig(BaseModel):
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    h264_profile: str = "high"
    pixel_format: str = "yuv420p"
    keyframe_interval: int = Field(default=30, ge=1, le=30)
    audio_sample_rate: int = Field(default=44100, gt=0)
    audio_channels: int = Field(default=2, ge=1, le=2)

class ToolsConfig(BaseModel):
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"

class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[Path] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level {v}")
        return v.upper()

class AppConfig(BaseModel):
    default_quality: QualityTier = QualityTier.MEDIUM
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
