import threading
import time
import pytest
from fractions import Fraction
from pathlib import Path
from unittest.mock import MagicMock

from vmcompress.config.models import AppConfig, PipelineConfig
from vmcompress.domain.errors import TrackError
from vmcompress.domain.models import DisplayTransform, FrameSize, SourceAsset, TrackKind
from vmcompress.infrastructure.event_bus import EventBus
from vmcompress.media.base import END_OF_STREAM, MediaBackend, OutputSession, Sample, TrackReader, TrackWriter

class FakeReader(TrackReader):
    """Emits ``count`` samples spaced ``interval`` seconds apart."""

    def __init__(self, kind, count, interval, delay=0.0, fail_at=None):
        self.kind = kind
        self.count = count
        self.interval = interval
        self.delay = delay
        self.fail_at = fail_at
        self.time_base = Fraction(1, 1000)
        self.read_count = 0
        self.closed = False
        self.writer = None
        self.max_in_flight = 0

    def next_sample(self):
        if self.delay:
            time.sleep(self.delay)
        if self.fail_at is not None and self.read_count == self.fail_at:
            raise TrackError(self.kind, IOError("corrupt packet"))
        if self.read_count >= self.count:
            return END_OF_STREAM
        index = self.read_count
        self.read_count += 1
        if self.writer is not None:
            self.max_in_flight = max(self.max_in_flight, self.read_count - len(self.writer.samples))
        return Sample(frame=index, time=index * self.interval)

    def close(self):
        self.closed = True

class FakeWriter(TrackWriter):
    def __init__(self, kind, output, delay=0.0, fail_at=None):
        self.kind = kind
        self.output = output
        self.delay = delay
        self.fail_at = fail_at
        self.samples = []
        self.finished = False
        self.threads = set()

    def append(self, sample):
        if self.finished:
            raise AssertionError("append after finish")
        if self.fail_at is not None and len(self.samples) == self.fail_at:
            raise ValueError("encoder rejected frame")
        if self.delay:
            time.sleep(self.delay)
        self.threads.add(threading.current_thread().name)
        self.samples.append(sample)
        self.output.mux(self.kind, sample)

    def finish(self):
        self.finished = True

class FakeOutput(OutputSession):
    def __init__(self, path, fail_on_start=False):
        self.path = Path(path)
        self.fail_on_start = fail_on_start
        self.writers = {}
        self.geometry = None
        self.muxed = []
        self.finalized = False
        self.discarded = False
        self._lock = threading.Lock()

    def add_video_track(self, geometry, profile, asset, encoder, time_base=None):
        self.geometry = geometry
        return self._add_writer(TrackKind.VIDEO)

    def add_audio_track(self, profile, encoder):
        return self._add_writer(TrackKind.AUDIO)

    def _add_writer(self, kind):
        writer = FakeWriter(kind, self, **self.writer_options[kind])
        self.writers[kind] = writer
        # lets the reader measure how far it runs ahead of its writer
        if kind in self.readers:
            self.readers[kind].writer = writer
        return writer

    def start(self):
        if self.fail_on_start:
            raise ValueError("width not divisible by 2")
        self.path.write_bytes(b"header")

    def mux(self, kind, sample):
        with self._lock:
            self.muxed.append((kind, sample.frame))
            with open(self.path, "ab") as f:
                f.write(b"x")

    def finalize(self):
        self.finalized = True
        with open(self.path, "ab") as f:
            f.write(b"trailer")

    def discard(self):
        self.discarded = True
        self.path.unlink(missing_ok=True)

class FakeBackend(MediaBackend):
    """In-memory stand-in for PyAV with configurable pacing and failures."""

    def __init__(self, video_samples=60, audio_samples=90, fps=30, reader_options=None,
                 writer_options=None, fail_on_start=False, fail_open=None):
        self.video_samples = video_samples
        self.audio_samples = audio_samples
        self.fps = fps
        self.reader_options = reader_options or {}
        self.writer_options = writer_options or {}
        self.fail_on_start = fail_on_start
        self.fail_open = fail_open
        self.readers = {}
        self.outputs = []

    def open_reader(self, asset, kind):
        if self.fail_open == kind:
            raise TrackError(kind, OSError("cannot open track"))
        options = self.reader_options.get(kind, {})
        if kind == TrackKind.VIDEO:
            reader = FakeReader(kind, self.video_samples, 1.0 / self.fps, **options)
        else:
            reader = FakeReader(kind, self.audio_samples, 1024 / 44100, **options)
        self.readers[kind] = reader
        return reader

    def open_output(self, path):
        output = FakeOutput(path, fail_on_start=self.fail_on_start)
        output.writer_options = {
            TrackKind.VIDEO: self.writer_options.get(TrackKind.VIDEO, {}),
            TrackKind.AUDIO: self.writer_options.get(TrackKind.AUDIO, {}),
        }
        output.readers = self.readers
        self.outputs.append(output)
        return output

def make_asset(width=1920, height=1080, rotation=0, has_audio=True, duration=2.0, path="clip.mov"):
    return SourceAsset(
        path=Path(path),
        duration=Fraction(duration).limit_denominator(1000),
        natural_size=FrameSize(width=width, height=height),
        transform=DisplayTransform.from_rotation(rotation),
        has_audio=has_audio,
        frame_rate=Fraction(30),
        video_codec="h264",
        audio_codec="aac" if has_audio else None,
        size_bytes=10_000_000,
    )

@pytest.fixture
def asset_factory():
    return make_asset

@pytest.fixture
def app_config(tmp_path):
    out = tmp_path / "out"
    return AppConfig(pipeline=PipelineConfig(temp_dir=out, poll_interval=0.01))

@pytest.fixture
def fake_backend():
    return FakeBackend()

@pytest.fixture
def fake_probe():
    probe = MagicMock()
    probe.probe.return_value = make_asset()
    return probe

@pytest.fixture
def event_bus():
    return EventBus()

@pytest.fixture
def fake_backend_cls():
    return FakeBackend
