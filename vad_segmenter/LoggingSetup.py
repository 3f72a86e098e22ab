# vad_segmenter/LoggingSetup.py
import sys
import logging
from pathlib import Path
from logging.handlers import RotatingFileHandler

LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(message)s'
LOG_FILE_NAME = "vad_segmenter.log"


def setup_logging(logs_dir: Path, verbose: bool = False, console: bool = True) -> Path:
    """
    Configure root logging for the segmenter CLI and embedding applications.

    Creates the log directory, sets up file rotation, and optionally adds
    console output.

    Args:
        logs_dir: Directory to store log files
        verbose: If True, set DEBUG level; otherwise INFO
        console: If False, log to file only (host application owns the console)

    Returns:
        Path of the active log file
    """
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    # Add rotating file handler (10MB max, keep 5 files)
    log_file = logs_dir / LOG_FILE_NAME
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logging.info("Logging initialized: level=%s, file=%s", logging.getLevelName(level), log_file)
    return log_file
