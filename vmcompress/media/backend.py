from pathlib import Path
from vmcompress.domain.models import SourceAsset, TrackKind
from vmcompress.media.base import MediaBackend
from vmcompress.media.readers import PyAVTrackReader
from vmcompress.media.writers import OutputContainer

class PyAVBackend(MediaBackend):
    """Decodes and re-encodes through PyAV's bundled FFmpeg libraries."""

    def open_reader(self, asset: SourceAsset, kind: TrackKind) -> PyAVTrackReader:
        return PyAVTrackReader(asset.path, kind)

    def open_output(self, path: Path) -> OutputContainer:
        return OutputContainer(path)
