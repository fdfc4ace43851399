import subprocess
import json
import logging
from fractions import Fraction
from pathlib import Path
from typing import Dict, Any, Optional
from vmcompress.domain.errors import NoVideoTrackError
from vmcompress.domain.models import DisplayTransform, FrameSize, SourceAsset

class FFprobeAdapter:
    """Wrapper around ffprobe to describe a source container."""

    def __init__(self, binary: str = "ffprobe"):
        self.binary = binary
        self.logger = logging.getLogger(__name__)

    def get_stream_info(self, file_path: Path) -> Dict[str, Any]:
        """Executes ffprobe and parses JSON output."""
        cmd = [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]

        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise RuntimeError(f"ffprobe failed for {file_path}: {result.stderr}")

        return json.loads(result.stdout)

    def probe(self, file_path: Path) -> SourceAsset:
        """Builds a SourceAsset; a missing, unreadable or empty video stream is NoVideoTrackError."""
        file_path = Path(file_path)
        try:
            data = self.get_stream_info(file_path)
        except (RuntimeError, ValueError) as e:
            raise NoVideoTrackError(f"could not read {file_path.name}", cause=e) from e

        streams = data.get("streams", [])
        # Cover art is exposed as a video stream too
        video_stream = next(
            (s for s in streams
             if s.get("codec_type") == "video"
             and not s.get("disposition", {}).get("attached_pic")),
            None
        )
        if not video_stream:
            raise NoVideoTrackError(f"no video stream found in {file_path.name}")

        width = int(video_stream.get("width", 0))
        height = int(video_stream.get("height", 0))
        if width <= 0 or height <= 0:
            raise NoVideoTrackError(f"video stream in {file_path.name} has no frame size")

        audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

        asset = SourceAsset(
            path=file_path,
            duration=self._parse_duration(data, video_stream),
            natural_size=FrameSize(width=width, height=height),
            transform=DisplayTransform.from_rotation(self._parse_rotation(video_stream)),
            has_audio=audio_stream is not None,
            frame_rate=self._parse_rate(video_stream.get("avg_frame_rate"))
                or self._parse_rate(video_stream.get("r_frame_rate")),
            video_codec=video_stream.get("codec_name", "unknown"),
            audio_codec=audio_stream.get("codec_name") if audio_stream else None,
            size_bytes=int(data.get("format", {}).get("size", 0) or 0),
        )
        self.logger.debug(
            f"Probed {file_path.name}: {width}x{height} rotation={asset.transform.rotation} "
            f"duration={asset.duration_seconds:.2f}s audio={asset.has_audio}"
        )
        return asset

    def _parse_rate(self, value: Optional[str]) -> Optional[Fraction]:
        # avg_frame_rate is "0/0" for unknown; r_frame_rate is often the timebase
        if not value:
            return None
        try:
            rate = Fraction(value)
        except (ValueError, ZeroDivisionError):
            return None
        if rate <= 0 or rate > 240:
            return None
        return rate

    def _parse_duration(self, data: Dict[str, Any], video_stream: Dict[str, Any]) -> Fraction:
        for raw in (data.get("format", {}).get("duration"), video_stream.get("duration")):
            if raw in (None, "N/A"):
                continue
            try:
                duration = Fraction(str(raw))
            except ValueError:
                continue
            if duration > 0:
                return duration
        return Fraction(0)

    def _parse_rotation(self, video_stream: Dict[str, Any]) -> int:
        """Clockwise display rotation in degrees.

        Display-matrix side data reports the counter-clockwise angle, the legacy
        ``rotate`` tag the clockwise one.
        """
        for side_data in video_stream.get("side_data_list", []) or []:
            if "rotation" in side_data:
                try:
                    return self._snap(-float(side_data["rotation"]))
                except (TypeError, ValueError):
                    break
        rotate_tag = video_stream.get("tags", {}).get("rotate")
        if rotate_tag is not None:
            try:
                return self._snap(float(rotate_tag))
            except ValueError:
                pass
        return 0

    @staticmethod
    def _snap(degrees: float) -> int:
        return (int(round(degrees / 90.0)) * 90) % 360
