import logging
from pathlib import Path
from typing import Optional
from rich.logging import RichHandler

LOGGER_NAME = "vmcompress"

def setup_logging(level: str = "INFO", log_file: Optional[Path] = None, debug: bool = False) -> logging.Logger:
    """Configures the package logger with a rich console handler and an optional log file."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO))

    # Re-running setup (tests, repeated CLI calls) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = RichHandler(rich_tracebacks=True, show_path=debug, markup=False)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(threadName)s - %(levelname)s - %(message)s'))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
