"""
Tests for logging configuration.
"""

import logging

import pytest

from stackwatch.core.observability.logging_config import _parse_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParseLevel:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("DEBUG", logging.DEBUG),
            ("info", logging.INFO),
            ("Warning", logging.WARNING),
            (None, logging.INFO),
            ("", logging.INFO),
            ("LOUD", logging.INFO),
            ("handlers", logging.INFO),
        ],
    )
    def test_levels(self, name, expected):
        assert _parse_level(name) == expected


class TestSetupLogging:
    def test_single_console_handler(self):
        setup_logging("WARNING")
        setup_logging("WARNING")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING

    def test_debug_format_has_line_numbers(self):
        setup_logging("DEBUG")
        fmt = logging.getLogger().handlers[0].formatter._fmt
        assert "%(lineno)d" in fmt

    def test_file_handler_with_own_level(self, tmp_path):
        log_file = tmp_path / "stackwatch.log"
        setup_logging("ERROR", log_file=str(log_file), log_file_level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("stackwatch.test").debug("only in the file")
        for handler in root.handlers:
            handler.flush()
        assert "only in the file" in log_file.read_text()
