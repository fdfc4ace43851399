import subprocess
import re
import logging
import threading
from collections import deque
from pathlib import Path
from typing import List, Optional

# Matches both the stats line ('time=00:00:05.00') and -progress output ('out_time=00:00:05.000000')
TIME_REGEX = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")

class RemuxProcess:
    """A running ffmpeg stream copy whose progress is scraped on a background thread."""

    def __init__(self, process: subprocess.Popen, tail_lines: int = 20):
        self.process = process
        self._position = 0.0
        self._lock = threading.Lock()
        self._tail = deque(maxlen=tail_lines)
        self._reader = threading.Thread(target=self._read_output, name="ffmpeg-progress", daemon=True)
        self._reader.start()

    def _read_output(self):
        for line in self.process.stdout:
            line = line.strip()
            match = TIME_REGEX.search(line)
            if match:
                h, m, s = map(float, match.groups())
                with self._lock:
                    self._position = max(self._position, h * 3600 + m * 60 + s)
            elif line and "=" not in line:
                # key=value lines are progress records, anything else is diagnostics
                self._tail.append(line)

    @property
    def position_seconds(self) -> float:
        with self._lock:
            return self._position

    @property
    def output_tail(self) -> str:
        return "\n".join(self._tail)

    def poll(self) -> Optional[int]:
        return self.process.poll()

    def wait(self) -> int:
        returncode = self.process.wait()
        self._reader.join(timeout=1.0)
        return returncode

    def terminate(self):
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=5.0)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        self._reader.join(timeout=1.0)

class FFmpegAdapter:
    """Wrapper around ffmpeg for container-level remuxing."""

    def __init__(self, binary: str = "ffmpeg"):
        self.binary = binary
        self.logger = logging.getLogger(__name__)

    def _build_remux_command(self, source: Path, destination: Path) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        return [
            self.binary,
            "-y",  # Overwrite output files
            "-nostdin",
            "-hide_banner",
            "-loglevel", "error",
            "-i", str(source),
            # Single video track; audio only when present
            "-map", "0:v:0",
            "-map", "0:a:0?",
            "-c", "copy",
            "-map_metadata", "0",
            "-movflags", "+faststart",
            "-progress", "pipe:1",
            "-nostats",
            # The destination carries a .part suffix, so the muxer must be explicit
            "-f", "mp4",
            str(destination),
        ]

    def start_remux(self, source: Path, destination: Path) -> RemuxProcess:
        """Starts a stream copy of source into destination without re-encoding."""
        cmd = self._build_remux_command(source, destination)
        self.logger.debug(f"FFMPEG_REMUX: {' '.join(cmd)}")
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
            bufsize=1
        )
        return RemuxProcess(process)
