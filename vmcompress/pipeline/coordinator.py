import os
import queue
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple
from vmcompress.config.models import AppConfig
from vmcompress.domain.errors import (
    CompressionCancelled, CompressionError, EncoderConfigurationError,
    EncodingFailedError, NoVideoTrackError, TrackError
)
from vmcompress.domain.geometry import resolve_geometry
from vmcompress.domain.models import PipelineState, TrackKind
from vmcompress.infrastructure.event_bus import EventBus
from vmcompress.media.base import END_OF_STREAM, MediaBackend, OutputSession, Sample, TrackReader, TrackWriter
from vmcompress.pipeline.runner import SessionRunner
from vmcompress.pipeline.session import PipelineSession

class TrackPump:
    """Moves samples of one track from its reader to its writer.

    The reader and the writer run on their own threads, joined by a bounded
    queue: a writer that falls behind fills the queue and blocks the reader,
    which caps in-flight samples per track at the queue depth.
    """

    def __init__(
        self,
        session: PipelineSession,
        reader: TrackReader,
        writer: TrackWriter,
        queue_depth: int = 2,
        poll_interval: float = 0.1,
        on_sample: Optional[Callable[[Sample], None]] = None,
    ):
        self.session = session
        self.reader = reader
        self.writer = writer
        self.kind = writer.kind
        self.poll_interval = poll_interval
        self.on_sample = on_sample
        self.queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_depth)
        self.samples_written = 0
        self._threads = [
            threading.Thread(target=self._read_loop, name=f"{self.kind.value}-reader", daemon=True),
            threading.Thread(target=self._write_loop, name=f"{self.kind.value}-writer", daemon=True),
        ]

    def start(self):
        for thread in self._threads:
            thread.start()

    def join(self):
        for thread in self._threads:
            if thread.ident is not None:
                thread.join()

    def _put(self, item) -> bool:
        while not self.session.should_stop:
            try:
                self.queue.put(item, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _get(self):
        while not self.session.should_stop:
            try:
                return self.queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
        return None

    def _read_loop(self):
        try:
            while not self.session.should_stop:
                sample = self.reader.next_sample()
                if not self._put(sample) or sample is END_OF_STREAM:
                    return
        except TrackError as e:
            self.session.fail(e)
        except Exception as e:
            self.session.fail(TrackError(self.kind, e))
        finally:
            self.reader.close()

    def _write_loop(self):
        try:
            while True:
                item = self._get()
                if item is None:
                    return
                if item is END_OF_STREAM:
                    self.writer.finish()
                    self.session.mark_finished(self.kind)
                    return
                self.writer.append(item)
                self.samples_written += 1
                if self.on_sample:
                    self.on_sample(item)
        except TrackError as e:
            self.session.fail(e)
        except Exception as e:
            self.session.fail(TrackError(self.kind, e))

class PipelineCoordinator(SessionRunner):
    """Demux, re-encode and mux one source into an H.264/AAC mp4."""

    def __init__(self, config: AppConfig, backend: MediaBackend, event_bus: EventBus):
        super().__init__(config, event_bus)
        self.backend = backend

    def run(self, session: PipelineSession) -> Path:
        output: Optional[OutputSession] = None
        pumps: List[TrackPump] = []
        try:
            self._transition(session, PipelineState.CONFIGURING)
            session.cancel_token.raise_if_cancelled()
            output, pumps = self._configure(session)

            self._transition(session, PipelineState.RUNNING)
            session.progress.report(self.config.pipeline.encode_range[0], "Compressing video...")
            session.progress.begin_range(*self.config.pipeline.encode_range)
            for pump in pumps:
                pump.start()
            self._await_tracks(session)
            for pump in pumps:
                pump.join()

            session.cancel_token.raise_if_cancelled()
            self._transition(session, PipelineState.FINALIZING)
            session.progress.report(self.config.pipeline.encode_range[1], "Finalizing...")
            try:
                output.finalize()
            except Exception as e:
                raise EncodingFailedError(f"could not finalize {session.partial_path.name}", cause=e) from e
            # Cancellation that arrives while the trailer is written still wins
            session.cancel_token.raise_if_cancelled()
            os.replace(session.partial_path, session.output_path)

            self._transition(session, PipelineState.COMPLETED)
            self.logger.debug(
                f"{session.asset.path.name}: wrote "
                + ", ".join(f"{p.kind.value}={p.samples_written}" for p in pumps)
            )
            return session.output_path
        except BaseException as e:
            session.stop_event.set()
            for pump in pumps:
                pump.join()
            if output is not None:
                output.discard()
            self._fail(session, e)
            raise

    def _configure(self, session: PipelineSession) -> Tuple[OutputSession, List[TrackPump]]:
        asset = session.asset
        if asset.natural_size.is_empty:
            raise NoVideoTrackError(f"{asset.path.name} has a zero-size video track")

        session.geometry = resolve_geometry(asset.natural_size, asset.transform, session.profile.max_dimension)
        self.logger.info(
            f"{asset.path.name}: {int(asset.natural_size.width)}x{int(asset.natural_size.height)} "
            f"(rotation {asset.transform.rotation}) -> {session.geometry.width}x{session.geometry.height}, "
            f"tier={session.tier.value}, audio={'yes' if asset.has_audio else 'no'}"
        )

        readers: List[TrackReader] = []
        output: Optional[OutputSession] = None
        try:
            try:
                readers.append(self.backend.open_reader(asset, TrackKind.VIDEO))
                if asset.has_audio:
                    readers.append(self.backend.open_reader(asset, TrackKind.AUDIO))
            except TrackError as e:
                raise EncodingFailedError(str(e), cause=e.cause) from e

            try:
                output = self.backend.open_output(session.partial_path)
                writers: List[TrackWriter] = [output.add_video_track(
                    session.geometry, session.profile, asset, self.config.encoder,
                    time_base=readers[0].time_base,
                )]
                if asset.has_audio:
                    writers.append(output.add_audio_track(session.profile, self.config.encoder))
                output.start()
            except CompressionError:
                raise
            except Exception as e:
                raise EncoderConfigurationError(str(e), cause=e) from e
        except BaseException:
            for reader in readers:
                reader.close()
            if output is not None:
                output.discard()
            session.partial_path.unlink(missing_ok=True)
            raise

        depth = self.config.pipeline.queue_depth
        interval = self.config.pipeline.poll_interval
        pumps = [TrackPump(session, readers[0], writers[0], depth, interval, self._video_progress(session))]
        if asset.has_audio:
            pumps.append(TrackPump(session, readers[1], writers[1], depth, interval))
        return output, pumps

    def _video_progress(self, session: PipelineSession) -> Callable[[Sample], None]:
        duration = session.asset.duration_seconds

        def on_sample(sample: Sample):
            if duration > 0 and sample.time is not None:
                session.progress.track(sample.time / duration, "Compressing")

        return on_sample

    def _await_tracks(self, session: PipelineSession):
        interval = self.config.pipeline.poll_interval
        while not session.wait(interval):
            if session.cancelled:
                break

        # Cancellation takes precedence over failures it may have provoked
        if session.cancelled:
            raise CompressionCancelled()
        failure = session.failure
        if failure is not None:
            self.logger.error(f"{session.asset.path.name}: {failure}")
            raise EncodingFailedError(str(failure), cause=failure.cause) from failure.cause
