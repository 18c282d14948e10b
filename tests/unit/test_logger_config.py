"""
Unit tests for logger_config module.

Covers the JSON formatter, structured error logging and the
log_batcher_call decorator.
"""

import json
import logging
import sys

import pytest

from firestore_batcher.batcher import Batcher
from firestore_batcher.config import Settings
from firestore_batcher.exceptions import BatchSizeCollapsedError
from firestore_batcher.logger_config import ErrorCategory
from firestore_batcher.logger_config import StructuredLogFormatter
from firestore_batcher.logger_config import batcher_logger
from firestore_batcher.logger_config import configure_logging
from firestore_batcher.logger_config import error_logger
from firestore_batcher.logger_config import log_structured_error
from tests.shared.mock_factory import ScriptedDocumentStore
from tests.shared.mock_factory import make_operations
from tests.shared.mock_factory import permission_error


def _record(msg="Test message", level=logging.ERROR, exc_info=None):
    return logging.LogRecord(
        name="test_logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestStructuredLogFormatter:
    """Test suite for StructuredLogFormatter."""

    def test_basic_log_entry(self):
        log_data = json.loads(StructuredLogFormatter().format(_record()))

        assert log_data["level"] == "ERROR"
        assert log_data["logger"] == "test_logger"
        assert log_data["message"] == "Test message"
        assert log_data["line"] == 10
        assert "timestamp" in log_data

    def test_exception_info(self):
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = _record("Error occurred", exc_info=sys.exc_info())

        log_data = json.loads(StructuredLogFormatter().format(record))

        assert log_data["exception"]["type"] == "ValueError"
        assert log_data["exception"]["message"] == "Test exception"
        assert isinstance(log_data["exception"]["traceback"], list)

    def test_extra_fields(self):
        record = _record("Batch committed", level=logging.INFO)
        record.operation = "commit"
        record.stats = {"batch_size": 500}

        log_data = json.loads(StructuredLogFormatter().format(record))

        assert log_data["operation"] == "commit"
        assert log_data["stats"] == {"batch_size": 500}


class TestLogStructuredError:
    """Test suite for log_structured_error."""

    def test_logs_at_category_level(self, mocker):
        mock_log = mocker.patch.object(error_logger, "log")

        log_structured_error(ErrorCategory.WARNING, "Something odd", operation="commit", chunk=3)

        level, message = mock_log.call_args.args
        extra = mock_log.call_args.kwargs["extra"]
        assert level == logging.WARNING
        assert message == "Something odd"
        assert extra == {"error_category": "WARNING", "operation": "commit", "chunk": 3}

    def test_includes_batcher_error_details(self, mocker):
        mock_log = mocker.patch.object(error_logger, "log")
        error = BatchSizeCollapsedError(operations_queued=4, document_path="items/a")

        log_structured_error(ErrorCategory.ERROR, "Collapsed", exception=error, context={"round": 2})

        kwargs = mock_log.call_args.kwargs
        assert kwargs["exc_info"] is error
        assert kwargs["extra"]["round"] == 2
        assert kwargs["extra"]["exception_type"] == "BatchSizeCollapsedError"
        assert kwargs["extra"]["error_details"]["error_code"] == "BATCH_SIZE_COLLAPSED"


class TestLogBatcherCall:
    """Test suite for the log_batcher_call decorator."""

    @pytest.mark.asyncio
    async def test_logs_start_and_completion(self, caplog):
        caplog.set_level(logging.DEBUG, logger="firestore_batcher")
        batcher = Batcher(ScriptedDocumentStore())
        batcher.add(make_operations(1)[0])

        await batcher.commit()

        messages = [r.getMessage() for r in caplog.records if r.name == "firestore_batcher"]
        assert messages[0].startswith("Calling commit with")
        assert "'operations_queued': 1" in messages[0]
        assert messages[-1].startswith("commit completed with")
        assert "'operations_processed': 1" in messages[-1]

    @pytest.mark.asyncio
    async def test_call_trace_is_quiet_at_info(self, caplog):
        caplog.set_level(logging.INFO, logger="firestore_batcher")
        batcher = Batcher(ScriptedDocumentStore())
        batcher.add(make_operations(1)[0])

        await batcher.commit()

        assert [r for r in caplog.records if r.name == "firestore_batcher"] == []

    @pytest.mark.asyncio
    async def test_logs_structured_error_and_reraises(self, mocker):
        mock_log = mocker.patch("firestore_batcher.logger_config.log_structured_error")
        batcher = Batcher(ScriptedDocumentStore([permission_error()]))
        batcher.add(make_operations(1)[0])

        with pytest.raises(Exception):
            await batcher.commit()

        kwargs = mock_log.call_args.kwargs
        assert kwargs["operation"] == "batcher_call"
        assert kwargs["function"] == "commit"
        assert kwargs["stats"]["operations_queued"] == 1

    def test_preserves_function_metadata(self):
        assert Batcher.commit.__name__ == "commit"
        assert Batcher.all.__name__ == "all"

    @pytest.mark.asyncio
    async def test_records_call_metrics(self, mocker):
        start = mocker.patch("firestore_batcher.logger_config.record_call_start", return_value=12.5)
        end = mocker.patch("firestore_batcher.logger_config.record_call_end")

        await Batcher(ScriptedDocumentStore()).commit()

        start.assert_called_once_with("commit")
        end.assert_called_once_with("commit", 12.5)


class TestConfigureLogging:
    """Test suite for configure_logging."""

    def test_sets_level(self):
        configure_logging(Settings(_env_file=None, log_level="DEBUG"))
        try:
            assert batcher_logger.level == logging.DEBUG
        finally:
            batcher_logger.setLevel(logging.INFO)

    def test_attaches_rotating_file_handler_once(self, tmp_path):
        log_file = tmp_path / "logs" / "batcher.log"
        settings = Settings(_env_file=None, log_file=str(log_file))

        configure_logging(settings)
        configure_logging(settings)
        try:
            expected = str(log_file.resolve())
            handlers = [h for h in batcher_logger.handlers if getattr(h, "baseFilename", None) == expected]
            assert len(handlers) == 1
            assert isinstance(handlers[0].formatter, StructuredLogFormatter)
            assert log_file.parent.is_dir()
        finally:
            for handler in handlers:
                batcher_logger.removeHandler(handler)
                handler.close()
            batcher_logger.setLevel(logging.INFO)
