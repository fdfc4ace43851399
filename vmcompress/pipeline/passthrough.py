import os
from pathlib import Path
from vmcompress.config.models import AppConfig
from vmcompress.domain.errors import CompressionCancelled, EncodingFailedError
from vmcompress.domain.models import PipelineState
from vmcompress.infrastructure.event_bus import EventBus
from vmcompress.infrastructure.ffmpeg import FFmpegAdapter, RemuxProcess
from vmcompress.pipeline.runner import SessionRunner
from vmcompress.pipeline.session import PipelineSession

# Share of the overall scale covered by the remux itself
EXPORT_RANGE = (0.2, 0.9)

class PassthroughPath(SessionRunner):
    """Repackages the source into mp4 without touching the encoded samples."""

    def __init__(self, config: AppConfig, ffmpeg: FFmpegAdapter, event_bus: EventBus):
        super().__init__(config, event_bus)
        self.ffmpeg = ffmpeg

    def run(self, session: PipelineSession) -> Path:
        process = None
        try:
            self._transition(session, PipelineState.CONFIGURING)
            session.cancel_token.raise_if_cancelled()
            session.progress.report(0.1, "Preparing original quality...")
            try:
                process = self.ffmpeg.start_remux(session.asset.path, session.partial_path)
            except OSError as e:
                raise EncodingFailedError(f"could not start {self.ffmpeg.binary}", cause=e) from e

            self._transition(session, PipelineState.RUNNING)
            session.progress.report(EXPORT_RANGE[0], "Exporting original...")
            session.progress.begin_range(*EXPORT_RANGE)
            returncode = self._poll(session, process)
            if returncode != 0:
                detail = f"ffmpeg exited with code {returncode}"
                if process.output_tail:
                    detail += f": {process.output_tail}"
                raise EncodingFailedError(detail)

            session.cancel_token.raise_if_cancelled()
            self._transition(session, PipelineState.FINALIZING)
            session.progress.report(0.95, "Finalizing...")
            os.replace(session.partial_path, session.output_path)

            self._transition(session, PipelineState.COMPLETED)
            return session.output_path
        except BaseException as e:
            if process is not None:
                process.terminate()
            self._fail(session, e)
            raise

    def _poll(self, session: PipelineSession, process: RemuxProcess) -> int:
        """Samples remux progress at the pipeline's poll cadence until ffmpeg exits."""
        duration = session.asset.duration_seconds
        interval = self.config.pipeline.poll_interval
        while True:
            if session.cancel_token.wait(interval):
                self.logger.info(f"{session.asset.path.name}: cancelling remux")
                process.terminate()
                raise CompressionCancelled()

            if duration > 0:
                session.progress.track(min(process.position_seconds / duration, 1.0), "Exporting")

            returncode = process.poll()
            if returncode is not None:
                return process.wait()
