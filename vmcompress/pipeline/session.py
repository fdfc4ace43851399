import threading
import uuid
from pathlib import Path
from typing import Dict, Optional, Tuple
from vmcompress.domain.errors import TrackError
from vmcompress.domain.models import PipelineState, QualityTier, SourceAsset, TargetGeometry, TrackKind
from vmcompress.infrastructure.housekeeping import PARTIAL_SUFFIX
from vmcompress.pipeline.cancellation import CancellationToken
from vmcompress.pipeline.progress import ProgressReporter

ALLOWED_TRANSITIONS: Dict[PipelineState, Tuple[PipelineState, ...]] = {
    PipelineState.IDLE: (PipelineState.CONFIGURING,),
    PipelineState.CONFIGURING: (PipelineState.RUNNING, PipelineState.FAILED, PipelineState.CANCELLED),
    PipelineState.RUNNING: (PipelineState.FINALIZING, PipelineState.FAILED, PipelineState.CANCELLED),
    PipelineState.FINALIZING: (PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.CANCELLED),
    PipelineState.COMPLETED: (),
    PipelineState.FAILED: (),
    PipelineState.CANCELLED: (),
}

def new_output_path(temp_dir: Path) -> Path:
    return Path(temp_dir) / f"{uuid.uuid4()}.mp4"

class PipelineSession:
    """Transient state of one compress() call.

    Per-track finished flags and the first failure are the only state the
    worker threads share; they are updated under a single condition.
    """

    def __init__(
        self,
        asset: SourceAsset,
        tier: QualityTier,
        output_path: Path,
        progress: ProgressReporter,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.asset = asset
        self.tier = tier
        self.profile = tier.profile
        self.output_path = Path(output_path)
        self.partial_path = self.output_path.with_name(self.output_path.name + PARTIAL_SUFFIX)
        self.progress = progress
        self.cancel_token = cancel_token or CancellationToken()
        self.geometry: Optional[TargetGeometry] = None
        self.state = PipelineState.IDLE

        # Set on failure or cancellation; pumps stop taking samples once it is set
        self.stop_event = threading.Event()
        self._condition = threading.Condition()
        self._finished: Dict[TrackKind, bool] = {
            TrackKind.VIDEO: False,
            TrackKind.AUDIO: not asset.has_audio,
        }
        self._failure: Optional[TrackError] = None

    def transition(self, new_state: PipelineState) -> PipelineState:
        """Moves the state machine forward; returns the previous state."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {new_state.value}")
        previous, self.state = self.state, new_state
        return previous

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.is_cancelled

    @property
    def should_stop(self) -> bool:
        return self.stop_event.is_set() or self.cancel_token.is_cancelled

    @property
    def failure(self) -> Optional[TrackError]:
        with self._condition:
            return self._failure

    def is_finished(self, kind: TrackKind) -> bool:
        with self._condition:
            return self._finished[kind]

    @property
    def all_finished(self) -> bool:
        with self._condition:
            return all(self._finished.values())

    def mark_finished(self, kind: TrackKind):
        with self._condition:
            self._finished[kind] = True
            self._condition.notify_all()

    def fail(self, error: TrackError):
        """Records the first failure; later ones are consequences of the stop."""
        with self._condition:
            if self._failure is None:
                self._failure = error
            self.stop_event.set()
            self._condition.notify_all()

    def wait(self, timeout: float) -> bool:
        """Waits until both tracks finished, a track failed or the timeout elapsed."""
        with self._condition:
            self._condition.wait_for(
                lambda: self._failure is not None or all(self._finished.values()),
                timeout=timeout,
            )
            return self._failure is not None or all(self._finished.values())
