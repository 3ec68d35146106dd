import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

from detect_filter.utils.constants import LOGS_DIR_NAME, LOG_FILE_NAME


def _parse_size(value, default: int = 5 * 1024 * 1024) -> int:
    """Parse a rotation size string such as "5MB" or "512KB" into bytes."""
    rot_str = str(value).upper().strip()
    try:
        if rot_str.endswith('MB'):
            return int(rot_str[:-2]) * 1024 * 1024
        if rot_str.endswith('KB'):
            return int(rot_str[:-2]) * 1024
        return int(rot_str)
    except ValueError:
        return default


def build_handlers(settings: dict) -> List[logging.Handler]:
    """Console handler, plus a rotating file handler when settings['file'] is true."""
    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers: List[logging.Handler] = [console_handler]

    if settings.get('file', False):
        log_dir = Path(settings.get('directory') or Path.cwd() / LOGS_DIR_NAME)
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / LOG_FILE_NAME,
                maxBytes=_parse_size(settings.get('rotation', '5MB')),
                backupCount=settings.get('backup_count', 5)
            )
        except OSError as e:
            logging.getLogger().warning(f"Failed to initialize file logger in {log_dir}: {e}")
        else:
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

    return handlers


class Logger:
    """Leveled single-line logger with console and rotating file output."""

    _configured = False

    @classmethod
    def setup(cls, settings: dict):
        """
        Global configuration for all Logger instances.

        Args:
            settings: Dictionary containing 'level', 'file', 'directory',
                      'rotation', 'backup_count'. File output is off unless
                      'file' is true; 'directory' defaults to ./logs under
                      the working directory at the time of the call.
        """
        if cls._configured:
            return

        level_name = str(settings.get('level', 'INFO')).upper()
        level = getattr(logging, level_name, logging.INFO)

        root = logging.getLogger()
        root.setLevel(level)

        if not root.handlers:
            for handler in build_handlers(settings):
                root.addHandler(handler)

        cls._configured = True

    @classmethod
    def reset(cls):
        """Allow setup() to run again (module unload)."""
        cls._configured = False

    def __init__(self, name: str = "DetectFilter"):
        self.logger = logging.getLogger(name)

    def info(self, message: str):
        self.logger.info(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def critical(self, message: str):
        self.logger.critical(message)
