import logging
import threading
from fractions import Fraction
from pathlib import Path
from typing import Any, Optional
import av
from av.audio.resampler import AudioResampler
from av.filter import Graph
from vmcompress.config.models import EncoderConfig
from vmcompress.domain.geometry import native_frame_size, orientation_filters
from vmcompress.domain.models import QualityProfile, SourceAsset, TargetGeometry, TrackKind
from vmcompress.media.base import OutputSession, Sample, TrackWriter

DEFAULT_FRAME_RATE = Fraction(30)

class OutputContainer(OutputSession):
    """PyAV mp4 output shared by the video and audio writers.

    Encoding happens on each writer's thread; muxing is serialized here so the
    two tracks can write concurrently.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        # The path carries a .part suffix, so the muxer is named explicitly
        self.container = av.open(str(self.path), mode="w", format="mp4")
        self._mux_lock = threading.Lock()
        self._closed = False

    def add_video_track(
        self,
        geometry: TargetGeometry,
        profile: QualityProfile,
        asset: SourceAsset,
        encoder: EncoderConfig,
        time_base: Any = None,
    ) -> "VideoTrackWriter":
        return VideoTrackWriter(self, geometry, profile, asset, encoder, time_base)

    def add_audio_track(self, profile: QualityProfile, encoder: EncoderConfig) -> "AudioTrackWriter":
        return AudioTrackWriter(self, profile, encoder)

    def start(self):
        self.container.start_encoding()

    def mux(self, packets):
        with self._mux_lock:
            self.container.mux(packets)

    def finalize(self):
        with self._mux_lock:
            if not self._closed:
                self._closed = True
                self.container.close()

    def discard(self):
        try:
            with self._mux_lock:
                if not self._closed:
                    self._closed = True
                    self.container.close()
        except Exception as e:
            # The trailer of an aborted file is irrelevant; the file is removed below
            self.logger.debug(f"Ignoring close error while discarding {self.path.name}: {e}")
        finally:
            self.path.unlink(missing_ok=True)

class VideoTrackWriter(TrackWriter):
    kind = TrackKind.VIDEO

    def __init__(
        self,
        output: OutputContainer,
        geometry: TargetGeometry,
        profile: QualityProfile,
        asset: SourceAsset,
        encoder: EncoderConfig,
        time_base: Any = None,
    ):
        self.output = output
        self.logger = logging.getLogger(__name__)
        # Encoded pixels are upright, so players need no rotation metadata
        self.width, self.height = geometry.width, geometry.height
        self.scaled_width, self.scaled_height = native_frame_size(geometry, asset.transform)
        self.pixel_format = encoder.pixel_format
        self.filters = orientation_filters(asset.transform)

        rate = asset.frame_rate or DEFAULT_FRAME_RATE
        self.stream = output.container.add_stream(
            encoder.video_codec, rate=rate, options={"profile": encoder.h264_profile}
        )
        codec = self.stream.codec_context
        codec.width = self.width
        codec.height = self.height
        codec.pix_fmt = encoder.pixel_format
        codec.bit_rate = profile.video_bit_rate
        codec.gop_size = encoder.keyframe_interval
        if time_base is not None:
            # Keep source timestamps exact instead of snapping them to 1/rate
            codec.time_base = time_base
            self.stream.time_base = time_base
        self.time_base = time_base or Fraction(1) / rate

        self._graph = self._build_graph() if self.filters else None
        self._last_pts: Optional[int] = None
        self.logger.debug(
            f"Video track: {encoder.video_codec} {self.width}x{self.height} "
            f"@ {profile.video_bit_rate} bps, gop={encoder.keyframe_interval}, "
            f"filters={','.join(name for name, _ in self.filters) or 'none'}"
        )

    def _build_graph(self) -> Graph:
        graph = Graph()
        node = graph.add_buffer(
            width=self.scaled_width, height=self.scaled_height,
            format=self.pixel_format, time_base=self.time_base,
        )
        for name, args in self.filters:
            step = graph.add(name, args)
            node.link_to(step)
            node = step
        node.link_to(graph.add("buffersink"))
        graph.configure()
        return graph

    def append(self, sample: Sample):
        frame = sample.frame.reformat(width=self.scaled_width, height=self.scaled_height, format=self.pixel_format)
        # The encoder rejects missing or non-increasing timestamps
        if frame.pts is None or (self._last_pts is not None and frame.pts <= self._last_pts):
            frame.pts = 0 if self._last_pts is None else self._last_pts + 1
        self._last_pts = frame.pts
        if self._graph is not None:
            frame.time_base = self.time_base
            self._graph.push(frame)
            frame = self._graph.pull()
        self.output.mux(self.stream.encode(frame))

    def finish(self):
        self.output.mux(self.stream.encode(None))

class AudioTrackWriter(TrackWriter):
    kind = TrackKind.AUDIO

    def __init__(self, output: OutputContainer, profile: QualityProfile, encoder: EncoderConfig):
        self.output = output
        self.logger = logging.getLogger(__name__)
        layout = "stereo" if encoder.audio_channels == 2 else "mono"

        self.stream = output.container.add_stream(encoder.audio_codec, rate=encoder.audio_sample_rate)
        self.stream.codec_context.layout = layout
        self.stream.codec_context.format = av.AudioFormat("fltp")
        self.stream.codec_context.bit_rate = profile.audio_bit_rate

        self.resampler = AudioResampler(format="fltp", layout=layout, rate=encoder.audio_sample_rate)
        self.logger.debug(
            f"Audio track: {encoder.audio_codec} {encoder.audio_sample_rate}Hz {layout} @ {profile.audio_bit_rate} bps"
        )

    def append(self, sample: Sample):
        for frame in self.resampler.resample(sample.frame):
            self.output.mux(self.stream.encode(frame))

    def finish(self):
        for frame in self.resampler.resample(None):
            self.output.mux(self.stream.encode(frame))
        self.output.mux(self.stream.encode(None))
