from pathlib import Path
from typing import Any, NamedTuple, Optional, Union
from vmcompress.config.models import EncoderConfig
from vmcompress.domain.models import QualityProfile, SourceAsset, TargetGeometry, TrackKind

class _EndOfStream:
    def __repr__(self):
        return "END_OF_STREAM"

END_OF_STREAM = _EndOfStream()

class Sample(NamedTuple):
    """One decoded unit of media and its presentation time in seconds."""
    frame: Any
    time: Optional[float]

class TrackReader:
    """Sequential single-consumer sample source for one track."""

    kind: TrackKind
    time_base: Any = None

    def next_sample(self) -> Union[Sample, _EndOfStream]:
        raise NotImplementedError

    def close(self):
        pass

class TrackWriter:
    """Sequential sample sink for one track of the output container."""

    kind: TrackKind

    def append(self, sample: Sample):
        raise NotImplementedError

    def finish(self):
        """Flushes buffered encoder output; no further appends are accepted."""
        raise NotImplementedError

class OutputSession:
    """Destination container. Only the coordinator owns it."""

    path: Path

    def add_video_track(
        self,
        geometry: TargetGeometry,
        profile: QualityProfile,
        asset: SourceAsset,
        encoder: EncoderConfig,
        time_base: Any = None,
    ) -> TrackWriter:
        raise NotImplementedError

    def add_audio_track(self, profile: QualityProfile, encoder: EncoderConfig) -> TrackWriter:
        raise NotImplementedError

    def start(self):
        """Opens encoders and writes the header."""
        raise NotImplementedError

    def finalize(self):
        """Writes the trailer; the file at ``path`` is complete afterwards."""
        raise NotImplementedError

    def discard(self):
        """Closes without producing output and removes the file at ``path``."""
        raise NotImplementedError

class MediaBackend:
    def open_reader(self, asset: SourceAsset, kind: TrackKind) -> TrackReader:
        raise NotImplementedError

    def open_output(self, path: Path) -> OutputSession:
        raise NotImplementedError
