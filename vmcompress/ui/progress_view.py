import threading
from typing import Optional
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

class ProgressView:
    """Rich progress bar usable as a compress() progress sink."""

    def __init__(self, title: str, console: Optional[Console] = None):
        self.console = console or Console()
        self._progress = Progress(
            TextColumn("[bold blue]{task.fields[title]}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._task: Optional[TaskID] = None
        self._title = title
        self._lock = threading.Lock()

    def __enter__(self) -> "ProgressView":
        self._progress.start()
        self._task = self._progress.add_task("Starting...", total=1.0, title=self._title)
        return self

    def __exit__(self, exc_type, exc, tb):
        self._progress.stop()

    def __call__(self, fraction: float, message: str):
        with self._lock:
            if self._task is not None:
                self._progress.update(self._task, completed=fraction, description=message)
