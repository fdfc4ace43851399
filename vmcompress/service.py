import logging
import tempfile
import time
from pathlib import Path
from typing import Optional, Union
from vmcompress.config.models import AppConfig
from vmcompress.domain.errors import CompressionCancelled, CompressionError, UnknownCompressionError
from vmcompress.domain.events import CompressionCompleted, CompressionFailed, CompressionStarted
from vmcompress.domain.geometry import resolve_geometry
from vmcompress.domain.models import CompressionPlan, QualityTier, SourceAsset, estimate_output_size
from vmcompress.infrastructure.event_bus import EventBus
from vmcompress.infrastructure.ffmpeg import FFmpegAdapter
from vmcompress.infrastructure.ffprobe import FFprobeAdapter
from vmcompress.media.backend import PyAVBackend
from vmcompress.media.base import MediaBackend
from vmcompress.pipeline.cancellation import CancellationToken
from vmcompress.pipeline.coordinator import PipelineCoordinator
from vmcompress.pipeline.passthrough import PassthroughPath
from vmcompress.pipeline.progress import ProgressReporter, ProgressSink
from vmcompress.pipeline.session import PipelineSession, new_output_path
from vmcompress.ui.formatting import format_size

class VideoCompressionService:
    """Compresses a local video file into a new temporary mp4.

    Every call is independent: it gets its own session, worker threads and
    output path. On any failure the partial output is already gone when the
    error reaches the caller.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        backend: Optional[MediaBackend] = None,
        probe: Optional[FFprobeAdapter] = None,
        ffmpeg: Optional[FFmpegAdapter] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config or AppConfig()
        self.event_bus = event_bus or EventBus()
        self.probe_adapter = probe or FFprobeAdapter(self.config.tools.ffprobe)
        self.ffmpeg = ffmpeg or FFmpegAdapter(self.config.tools.ffmpeg)
        self.coordinator = PipelineCoordinator(self.config, backend or PyAVBackend(), self.event_bus)
        self.passthrough = PassthroughPath(self.config, self.ffmpeg, self.event_bus)
        self.logger = logging.getLogger(__name__)

    @property
    def temp_dir(self) -> Path:
        temp_dir = self.config.pipeline.temp_dir or Path(tempfile.gettempdir())
        temp_dir.mkdir(parents=True, exist_ok=True)
        return temp_dir

    def probe(self, source_path: Union[str, Path]) -> SourceAsset:
        return self.probe_adapter.probe(Path(source_path))

    def plan(
        self, source_path: Union[str, Path], tier: QualityTier, asset: Optional[SourceAsset] = None
    ) -> CompressionPlan:
        """Describes the output compress() would produce without producing it."""
        asset = asset or self.probe(source_path)
        profile = tier.profile
        return CompressionPlan(
            asset=asset,
            tier=tier,
            geometry=resolve_geometry(asset.natural_size, asset.transform, profile.max_dimension),
            passthrough=profile.passthrough,
            estimated_size_bytes=estimate_output_size(asset.size_bytes, tier),
        )

    def compress(
        self,
        source_path: Union[str, Path],
        tier: Optional[Union[QualityTier, str]] = None,
        on_progress: Optional[ProgressSink] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Path:
        """Returns the path of the compressed file or raises a CompressionError."""
        source_path = Path(source_path)
        cancel_token = cancel_token or CancellationToken()
        start_time = time.monotonic()

        progress = ProgressReporter(
            on_progress, step=self.config.pipeline.progress_step,
            event_bus=self.event_bus, source_path=source_path,
        )
        try:
            try:
                tier = QualityTier(tier) if tier is not None else self.config.default_quality
                self.event_bus.publish(CompressionStarted(source_path=source_path, tier=tier))
                progress.report(0.0, "Analyzing video...")
                cancel_token.raise_if_cancelled()
                asset = self.probe(source_path)

                session = PipelineSession(asset, tier, new_output_path(self.temp_dir), progress, cancel_token)
                if tier.profile.passthrough:
                    output_path = self.passthrough.run(session)
                else:
                    progress.report(0.1, "Preparing compression...")
                    output_path = self.coordinator.run(session)
            except CompressionError:
                raise
            except Exception as e:
                raise UnknownCompressionError(str(e), cause=e) from e

            progress.report(1.0, "Complete!" if tier.profile.passthrough else "Compression complete!")
        except CompressionError as e:
            self._report_failure(source_path, e)
            raise
        finally:
            progress.close()

        input_size = asset.size_bytes or source_path.stat().st_size
        output_size = output_path.stat().st_size
        completed = CompressionCompleted(
            source_path=source_path,
            output_path=output_path,
            input_size_bytes=input_size,
            output_size_bytes=output_size,
            elapsed_seconds=time.monotonic() - start_time,
        )
        self.logger.info(
            f"Compression complete: {format_size(input_size)} -> {format_size(output_size)} "
            f"({completed.reduction_percent}% smaller) in {completed.elapsed_seconds:.1f}s"
        )
        self.event_bus.publish(completed)
        return output_path

    def _report_failure(self, source_path: Path, error: CompressionError):
        if isinstance(error, CompressionCancelled):
            self.logger.info(f"{source_path.name}: compression cancelled")
        else:
            self.logger.error(f"{source_path.name}: {error}")
        self.event_bus.publish(CompressionFailed(
            source_path=source_path,
            error_kind=error.kind.value,
            error_message=str(error),
            cause=repr(error.cause) if error.cause else None,
        ))

def compress(
    source_path: Union[str, Path],
    tier: Union[QualityTier, str] = QualityTier.MEDIUM,
    on_progress: Optional[ProgressSink] = None,
    cancel_token: Optional[CancellationToken] = None,
    config: Optional[AppConfig] = None,
) -> Path:
    """Compresses one file with a fresh service; see VideoCompressionService.compress."""
    return VideoCompressionService(config=config).compress(source_path, tier, on_progress, cancel_token)
