# src/contextforge/logging_config.py
"""
Logging setup for applications embedding ContextForge.

The library itself only creates module loggers; handlers are installed by
the host application, either on its own or through ``configure_logging``
with the ``[logging]`` configuration section.

Key concepts:

    **Display filter**: When ``console_enabled=False`` (the default), the
    console handler still exists but only passes records carrying
    ``extra={"display": True}``. Operational messages such as
    "Merged 3 blocks into ..." can then reach the user while debug chatter
    stays in the log file.

    **File rotation**: the optional file handler is a
    ``RotatingFileHandler`` bounded by ``rotation_max_bytes`` and
    ``rotation_backup_count``.

Usage:
    from contextforge.logging_config import configure_logging, log_display

    configure_logging(config.logging)
    log_display(logger, logging.INFO, "Compressed %d blocks", count)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from .config.settings import LoggingSettings

CONSOLE_FORMAT = "%(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)-40s - %(message)s (%(filename)s:%(lineno)d)"

# Third-party loggers that are noisy at DEBUG.
DEFAULT_COMPONENT_LEVELS: Dict[str, str] = {
    "contextforge": "INFO",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "openai": "WARNING",
    "ollama": "WARNING",
    "asyncio": "WARNING",
    "aiosqlite": "WARNING",
}

_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None
_log_file_path: Optional[Path] = None


class DisplayFilter(logging.Filter):
    """Controls which log records pass through to the console handler.

    Behavior matrix::

        +------------------------+--------------+-----------------+
        | console_enabled        | display=True | display=False/  |
        |                        |              | absent          |
        +------------------------+--------------+-----------------+
        | True                   | PASS         | PASS            |
        | False (default)        | PASS*        | BLOCK           |
        +------------------------+--------------+-----------------+

        * subject to display_min_level
    """

    def __init__(self, console_globally_enabled: bool = False, display_min_level: int = logging.INFO) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        if getattr(record, "display", False):
            return record.levelno >= self.display_min_level
        return False


def _level(name: str, default: int) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def configure_logging(
    config: Optional[LoggingSettings] = None,
    app_name: str = "contextforge",
) -> Optional[Path]:
    """
    Install console and file handlers on the root logger.

    Calling it again replaces the handlers installed by the previous call;
    handlers added by other code are left alone.

    Args:
        config: The ``[logging]`` section; defaults when None.
        app_name: Used for the log file name when ``file_path`` is a directory.

    Returns:
        Path of the log file, or None when file logging is disabled or failed.
    """
    global _console_handler, _file_handler, _log_file_path
    settings = config or LoggingSettings()
    root_logger = logging.getLogger()

    for handler in (_console_handler, _file_handler):
        if handler is not None:
            root_logger.removeHandler(handler)
            handler.close()
    _console_handler = _file_handler = _log_file_path = None

    root_logger.setLevel(logging.DEBUG)

    # Console handler always exists so display=True records can appear.
    console = logging.StreamHandler(sys.stderr)
    if settings.console_enabled:
        console.setLevel(_level(settings.console_level, logging.WARNING))
    else:
        console.setLevel(logging.DEBUG)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console.addFilter(DisplayFilter(
        console_globally_enabled=settings.console_enabled,
        display_min_level=_level(settings.display_min_level, logging.INFO),
    ))
    root_logger.addHandler(console)
    _console_handler = console

    if settings.file_enabled:
        _file_handler, _log_file_path = _create_file_handler(settings, app_name)
        if _file_handler is not None:
            root_logger.addHandler(_file_handler)

    components: Dict[str, str] = {**DEFAULT_COMPONENT_LEVELS, **settings.components}
    for component_name, level_str in components.items():
        logging.getLogger(component_name).setLevel(_level(level_str, logging.INFO))

    if _log_file_path is not None:
        logging.getLogger(__name__).debug(f"Logging configured. Log file: {_log_file_path}")
    return _log_file_path


def _create_file_handler(settings: LoggingSettings, app_name: str) -> tuple[Optional[logging.Handler], Optional[Path]]:
    log_file_path = Path(settings.file_path).expanduser()
    if log_file_path.is_dir():
        log_file_path = log_file_path / f"{app_name}.log"
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_file_path,
            maxBytes=settings.rotation_max_bytes,
            backupCount=settings.rotation_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Cannot create log file {log_file_path}: {e}\n")
        return None, None

    handler.setLevel(_level(settings.file_level, logging.DEBUG))
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler, log_file_path


def log_display(logger: logging.Logger, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
    """Log a message that also reaches the console when console logging is off.

    The ``extra`` kwarg is merged, not replaced.
    """
    extra = kwargs.pop("extra", None) or {}
    extra["display"] = True
    kwargs["extra"] = extra
    logger.log(level, msg, *args, **kwargs)


def get_log_file_path() -> Optional[Path]:
    return _log_file_path
