"""
LoggingHandler module.
Owns the taskprogress log directory, per-run rotation of the CLI log and
attaching handlers to the package logger.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from taskprogress.shared.paths import get_logs_dir

DEFAULT_LOG_FILE = "taskprogress-cli.log"
MAX_LOG_BYTES = 1024 * 1024
BACKUP_COUNT = 5


class LoggingHandler:
    """
    Log files live in $TASKPROGRESS_DATA_DIR/logs (~/.local/share/taskprogress/logs).
    Usage:
        handler = LoggingHandler()
        handler.rotate_log_for_logger('taskprogress-cli.log')
        logger = handler.setup_logger('taskprogress', 'taskprogress-cli.log')
    """
    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = Path(log_dir) if log_dir else get_logs_dir()
        self.ensure_log_directory()

    def ensure_log_directory(self) -> None:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logging.getLogger(__name__).warning(f"Failed to create log directory: {e}")

    def _backup_path(self, log_path: Path, index: int) -> Path:
        return log_path.with_name(f"{log_path.name}.{index}")

    def rotate_log_file_per_run(self, log_path: Path, backup_count: int = BACKUP_COUNT):
        """Start each run with a fresh file: log -> log.1 -> ... -> log.N, the oldest dropped."""
        if not log_path.exists():
            return
        oldest = self._backup_path(log_path, backup_count)
        if oldest.exists():
            oldest.unlink()
        for index in range(backup_count - 1, 0, -1):
            backup = self._backup_path(log_path, index)
            if backup.exists():
                backup.rename(self._backup_path(log_path, index + 1))
        log_path.rename(self._backup_path(log_path, 1))

    def rotate_log_for_logger(self, log_file: Optional[str] = None, backup_count: int = BACKUP_COUNT):
        """Rotate before the file handler is attached, otherwise the open file is moved."""
        self.rotate_log_file_per_run(self.log_dir / (log_file or DEFAULT_LOG_FILE), backup_count=backup_count)

    def setup_logger(self, name: str, log_file: Optional[str] = None) -> logging.Logger:
        """
        Configure `name` with an ERROR console handler and, when log_file is
        given, a size-rotated file handler at DEBUG. Calling it again for the
        same logger and file does not add handlers twice.
        """
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        if not any(type(h) is logging.StreamHandler for h in logger.handlers):
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.ERROR)
            console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
            logger.addHandler(console_handler)

        if log_file:
            file_path = str(self.log_dir / log_file)
            already_attached = any(
                isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename == file_path
                for h in logger.handlers
            )
            if not already_attached:
                file_handler = logging.handlers.RotatingFileHandler(
                    file_path, mode='a', encoding='utf-8', maxBytes=MAX_LOG_BYTES, backupCount=BACKUP_COUNT
                )
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                logger.addHandler(file_handler)

        return logger
