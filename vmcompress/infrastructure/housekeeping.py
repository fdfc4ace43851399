import logging
import time
from pathlib import Path

PARTIAL_SUFFIX = ".part"

class HousekeepingService:
    """Removes partial outputs left behind by a killed process."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def cleanup_partial_files(self, directory: Path, min_age_seconds: float = 3600.0) -> int:
        """Deletes stale ``*.mp4.part`` files; recent ones may belong to a live session."""
        directory = Path(directory)
        if not directory.is_dir():
            return 0

        removed = 0
        cutoff = time.time() - min_age_seconds
        for path in directory.glob(f"*.mp4{PARTIAL_SUFFIX}"):
            try:
                if path.stat().st_mtime > cutoff:
                    continue
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
        if removed:
            self.logger.info(f"Removed {removed} stale partial file(s) from {directory}")
        return removed
