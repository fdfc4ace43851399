from pathlib import Path
from typing import Optional
from pydantic import BaseModel
from .models import PipelineState, QualityTier

class Event(BaseModel):
    """Base class for all domain events."""
    pass

class CompressionEvent(Event):
    source_path: Path

class CompressionStarted(CompressionEvent):
    tier: QualityTier

class PipelineStateChanged(CompressionEvent):
    previous: PipelineState
    current: PipelineState

class ProgressUpdated(CompressionEvent):
    fraction: float
    message: str

class CompressionCompleted(CompressionEvent):
    output_path: Path
    input_size_bytes: int
    output_size_bytes: int
    elapsed_seconds: float

    @property
    def reduction_percent(self) -> int:
        if self.input_size_bytes == 0:
            return 0
        return int((1.0 - self.output_size_bytes / self.input_size_bytes) * 100)

class CompressionFailed(CompressionEvent):
    error_kind: str
    error_message: str
    cause: Optional[str] = None
