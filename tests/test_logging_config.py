# tests/test_logging_config.py
"""
Tests for contextforge.logging_config: the display filter, handler
installation and file rotation settings.
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from contextforge import logging_config
from contextforge.config.settings import LoggingSettings
from contextforge.logging_config import (DisplayFilter, configure_logging,
                                         get_log_file_path, log_display)


def make_record(level=logging.INFO, display=None):
    record = logging.LogRecord("contextforge.test", level, __file__, 1, "message", None, None)
    if display is not None:
        record.display = display
    return record


@pytest.fixture
def restore_logging():
    """Undo handler and level changes made by configure_logging."""
    root = logging.getLogger()
    original_level = root.level
    component_levels = {name: logging.getLogger(name).level for name in logging_config.DEFAULT_COMPONENT_LEVELS}
    yield
    for handler in (logging_config._console_handler, logging_config._file_handler):
        if handler is not None:
            root.removeHandler(handler)
            handler.close()
    logging_config._console_handler = logging_config._file_handler = logging_config._log_file_path = None
    root.setLevel(original_level)
    for name, level in component_levels.items():
        logging.getLogger(name).setLevel(level)


class TestDisplayFilter:

    def test_console_enabled_passes_everything(self):
        flt = DisplayFilter(console_globally_enabled=True)
        assert flt.filter(make_record())
        assert flt.filter(make_record(display=True))

    def test_console_disabled_blocks_plain_records(self):
        flt = DisplayFilter(console_globally_enabled=False)
        assert not flt.filter(make_record())
        assert not flt.filter(make_record(display=False))

    def test_display_records_respect_min_level(self):
        flt = DisplayFilter(console_globally_enabled=False, display_min_level=logging.WARNING)
        assert flt.filter(make_record(logging.WARNING, display=True))
        assert not flt.filter(make_record(logging.INFO, display=True))


class TestLogDisplay:

    def test_marks_record_and_keeps_extra(self, caplog):
        logger = logging.getLogger("contextforge.test.display")
        with caplog.at_level(logging.INFO, logger="contextforge.test.display"):
            log_display(logger, logging.INFO, "Merged %d blocks", 3, extra={"zone": "STABLE"})

        record = caplog.records[-1]
        assert record.getMessage() == "Merged 3 blocks"
        assert record.display is True
        assert record.zone == "STABLE"


class TestConfigureLogging:

    def test_console_only_by_default(self, restore_logging):
        assert configure_logging() is None
        assert get_log_file_path() is None
        assert logging_config._console_handler in logging.getLogger().handlers

    def test_file_handler(self, tmp_path, restore_logging):
        settings = LoggingSettings(
            file_enabled=True, file_path=str(tmp_path / "logs" / "cf.log"),
            rotation_max_bytes=2048, rotation_backup_count=2,
            components={"contextforge": "DEBUG"},
        )

        path = configure_logging(settings)
        logging.getLogger("contextforge.test.file").debug("written to file")
        logging_config._file_handler.flush()

        assert path == tmp_path / "logs" / "cf.log"
        handler = logging_config._file_handler
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 2048
        assert handler.backupCount == 2
        assert "written to file" in path.read_text(encoding="utf-8")

    def test_directory_path_gets_app_log_name(self, tmp_path, restore_logging):
        path = configure_logging(LoggingSettings(file_enabled=True, file_path=str(tmp_path)), app_name="myapp")
        assert path == tmp_path / "myapp.log"

    def test_reconfigure_replaces_own_handlers(self, tmp_path, restore_logging):
        root = logging.getLogger()
        settings = LoggingSettings(file_enabled=True, file_path=str(tmp_path / "a.log"))
        configure_logging(settings)
        count = len(root.handlers)

        configure_logging(settings)

        assert len(root.handlers) == count

    def test_component_levels(self, restore_logging):
        configure_logging(LoggingSettings(components={"httpx": "ERROR"}))
        assert logging.getLogger("httpx").level == logging.ERROR
        assert logging.getLogger("openai").level == logging.WARNING
