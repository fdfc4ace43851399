import logging
from pathlib import Path
from typing import Union
import av
from vmcompress.domain.errors import TrackError
from vmcompress.domain.models import TrackKind
from vmcompress.media.base import END_OF_STREAM, Sample, TrackReader, _EndOfStream

class PyAVTrackReader(TrackReader):
    """Decodes one track of the source through its own input container.

    Each reader opens the file separately, so the video and audio tracks can be
    pulled from different threads without sharing demuxer state.
    """

    def __init__(self, path: Path, kind: TrackKind):
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        try:
            self.container = av.open(str(path))
            streams = self.container.streams.video if kind == TrackKind.VIDEO else self.container.streams.audio
            if not streams:
                raise ValueError(f"no {kind.value} stream in {path}")
            self.stream = streams[0]
        except Exception as e:
            self.close()
            raise TrackError(kind, e) from e

        if kind == TrackKind.VIDEO:
            self.stream.codec_context.thread_type = "AUTO"
        self.time_base = self.stream.time_base
        self._start = float(self.stream.start_time * self.stream.time_base) \
            if self.stream.start_time is not None and self.stream.time_base else 0.0
        self._frames = self.container.decode(self.stream)
        self.samples_read = 0

    def next_sample(self) -> Union[Sample, _EndOfStream]:
        try:
            frame = next(self._frames, None)
        except Exception as e:
            raise TrackError(self.kind, e) from e
        if frame is None:
            return END_OF_STREAM

        self.samples_read += 1
        time = frame.time - self._start if frame.time is not None else None
        return Sample(frame=frame, time=time)

    def close(self):
        container = getattr(self, "container", None)
        if container is not None:
            container.close()
            self.container = None
