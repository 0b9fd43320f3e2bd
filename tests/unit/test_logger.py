"""Tests for logging setup and the discovery diagnostics suffix."""

import io
import logging

import pytest

from pluginctl.lib.logger import DiagnosticsFilter, setup_logging


@pytest.fixture
def root_logger():
    """Restore the root logger after a test reconfigures it."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("pluginctl.test", logging.INFO, __file__, 1, "msg", None, None)
    record.__dict__.update(extra)
    return record


class TestDiagnosticsFilter:
    def test_no_extras(self):
        """Test that a record without extras gets an empty suffix."""
        record = make_record()
        assert DiagnosticsFilter().filter(record) is True
        assert record.diagnostics == ""

    def test_extras_in_fixed_order(self):
        """Test that extras render as key=value in a fixed order."""
        record = make_record(path="/plugins/cluster", discovery="default")
        DiagnosticsFilter().filter(record)
        assert record.diagnostics == " [discovery=default path=/plugins/cluster]"

    def test_empty_context_omitted(self):
        """Test that the stand-alone context ("") is left out."""
        record = make_record(context="", discovery="default")
        DiagnosticsFilter().filter(record)
        assert record.diagnostics == " [discovery=default]"


class TestSetupLogging:
    def test_level_and_stream(self, root_logger):
        """Test that the level applies and lines reach the given stream."""
        stream = io.StringIO()
        setup_logging(level="DEBUG", format_string="%(levelname)s %(message)s%(diagnostics)s", stream=stream)

        assert root_logger.level == logging.DEBUG
        logging.getLogger("pluginctl.test").debug("hello", extra={"discovery": "default", "context": "ctx"})
        assert stream.getvalue() == "DEBUG hello [discovery=default context=ctx]\n"

    def test_default_format_from_settings(self, root_logger):
        """Test that the settings format renders records without extras."""
        stream = io.StringIO()
        setup_logging(level="INFO", stream=stream)

        logging.getLogger("pluginctl.test").info("plain")
        assert stream.getvalue().rstrip().endswith("INFO - plain")

    def test_replaces_existing_handlers(self, root_logger):
        """Test that calling twice leaves a single handler."""
        setup_logging(stream=io.StringIO())
        handler = setup_logging(stream=io.StringIO())
        assert root_logger.handlers == [handler]

    def test_quiets_client_libraries(self, root_logger):
        """Test that HTTP and cluster client loggers are raised to WARNING."""
        setup_logging(level="DEBUG", stream=io.StringIO())
        assert logging.getLogger("kubernetes").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
