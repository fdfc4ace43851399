import logging
from vmcompress.config.models import AppConfig
from vmcompress.domain.errors import CompressionCancelled
from vmcompress.domain.events import PipelineStateChanged
from vmcompress.domain.models import PipelineState
from vmcompress.infrastructure.event_bus import EventBus
from vmcompress.pipeline.session import PipelineSession

class SessionRunner:
    """State handling and cleanup shared by the re-encode and passthrough paths."""

    def __init__(self, config: AppConfig, event_bus: EventBus):
        self.config = config
        self.event_bus = event_bus
        self.logger = logging.getLogger(self.__class__.__module__)

    def run(self, session: PipelineSession):
        raise NotImplementedError

    def _transition(self, session: PipelineSession, new_state: PipelineState):
        previous = session.transition(new_state)
        self.logger.debug(f"{session.asset.path.name}: {previous.value} -> {new_state.value}")
        self.event_bus.publish(PipelineStateChanged(
            source_path=session.asset.path, previous=previous, current=new_state
        ))

    def _fail(self, session: PipelineSession, error: BaseException):
        """Moves to the terminal state matching the error and removes every partial artifact."""
        session.stop_event.set()
        self._remove_outputs(session)
        if session.state.is_terminal:
            return
        terminal = PipelineState.CANCELLED if isinstance(error, CompressionCancelled) else PipelineState.FAILED
        self._transition(session, terminal)

    def _remove_outputs(self, session: PipelineSession):
        session.partial_path.unlink(missing_ok=True)
        session.output_path.unlink(missing_ok=True)
