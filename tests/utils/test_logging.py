"""
Unit tests for logging setup module.

Covers the JSON formatter, root logger configuration per environment and the
log_performance decorator on plain and coroutine functions.
"""

import asyncio
import inspect
import json
import logging
import logging.handlers
import sys

import pytest

from src.utils.logging_setup import (
    JSONFormatter,
    QUIET_LOGGERS,
    get_logger,
    log_performance,
    setup_logging,
)


def make_record(msg="Query matched 3 features", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="modules.map_workbench.engine",
        level=level,
        pathname="/engine.py",
        lineno=120,
        msg=msg,
        args=(),
        exc_info=exc_info
    )
    record.funcName = "run_query"
    record.module = "engine"
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def root_logger():
    """Root logger, restored to its previous handlers and level afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_standard_fields(self):
        """Test the fixed fields of every JSON line."""
        parsed = json.loads(JSONFormatter(datefmt='%Y-%m-%d %H:%M:%S').format(make_record()))

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "modules.map_workbench.engine"
        assert parsed["message"] == "Query matched 3 features"
        assert parsed["module"] == "engine"
        assert parsed["function"] == "run_query"
        assert parsed["line"] == 120
        assert "timestamp" in parsed

    def test_exception_included(self):
        """Test tracebacks are serialised under 'exception'."""
        try:
            raise RuntimeError("capability unavailable")
        except RuntimeError:
            record = make_record("Analysis failed", level=logging.ERROR, exc_info=sys.exc_info())

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["level"] == "ERROR"
        assert "RuntimeError: capability unavailable" in parsed["exception"]

    def test_extra_fields_included(self):
        """Test extra fields are added and record internals are not."""
        parsed = json.loads(JSONFormatter().format(make_record(dataset_id="parks", generation=4)))

        assert parsed["dataset_id"] == "parks"
        assert parsed["generation"] == 4
        assert "msg" not in parsed
        assert "levelno" not in parsed

    def test_unserialisable_extra_uses_str(self):
        parsed = json.loads(JSONFormatter().format(make_record(path=object)))

        assert parsed["path"] == str(object)


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_development_plain_text(self, root_logger):
        setup_logging(environment="development", log_level="DEBUG")

        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1
        handler = root_logger.handlers[0]
        assert handler.stream is sys.stdout
        assert not isinstance(handler.formatter, JSONFormatter)

    def test_production_json(self, root_logger):
        setup_logging(environment="production", log_level="INFO")

        assert root_logger.level == logging.INFO
        assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)

    def test_log_file_per_environment(self, root_logger, tmp_path):
        """Test a rotating file handler writes workbench_<environment>.log."""
        log_dir = tmp_path / "logs"

        setup_logging(environment="production", log_level="INFO", log_dir=str(log_dir))
        get_logger("modules.map_workbench.engine").info("Engine started", extra={"datasets": 2})
        for handler in root_logger.handlers:
            handler.flush()

        file_handlers = [h for h in root_logger.handlers
                         if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 10 * 1024 * 1024
        assert file_handlers[0].backupCount == 5

        log_file = log_dir / "workbench_production.log"
        parsed = json.loads(log_file.read_text().strip())
        assert parsed["message"] == "Engine started"
        assert parsed["datasets"] == 2

        for handler in file_handlers:
            handler.close()

    def test_repeated_setup_replaces_handlers(self, root_logger):
        stale = logging.StreamHandler()
        root_logger.addHandler(stale)

        setup_logging(environment="development")
        setup_logging(environment="development")

        assert len(root_logger.handlers) == 1
        assert stale not in root_logger.handlers

    def test_third_party_loggers_quietened(self, root_logger):
        setup_logging(environment="development", log_level="DEBUG")

        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
        assert {"shapely", "tenacity"} <= set(QUIET_LOGGERS)

    def test_invalid_level(self, root_logger):
        with pytest.raises(AttributeError):
            setup_logging(environment="development", log_level="LOUD")


class TestGetLogger:
    """Test suite for get_logger."""

    def test_named_logger(self):
        logger = get_logger("modules.map_workbench.registry")

        assert logger.name == "modules.map_workbench.registry"
        assert logger is get_logger("modules.map_workbench.registry")


class TestLogPerformance:
    """Test suite for the log_performance decorator."""

    def test_sync_success(self, caplog):
        @log_performance
        def compile_query(clauses, dataset="parks"):
            return f"{dataset}:{clauses}"

        with caplog.at_level(logging.DEBUG):
            assert compile_query(2, dataset="trees") == "trees:2"

        assert "Starting compile_query" in caplog.text
        assert "Completed compile_query in" in caplog.text

    def test_sync_failure_reraised(self, caplog):
        @log_performance
        def compile_query():
            raise ValueError("Field 'HEIGHT' not found")

        with caplog.at_level(logging.INFO):
            with pytest.raises(ValueError):
                compile_query()

        assert "Failed compile_query after" in caplog.text
        assert "Field 'HEIGHT' not found" in caplog.text

    def test_async_success(self, caplog):
        """Test coroutine functions stay coroutine functions and are timed when awaited."""
        @log_performance
        async def run_analysis(value):
            await asyncio.sleep(0)
            return value * 2

        with caplog.at_level(logging.INFO):
            result = asyncio.run(run_analysis(21))

        assert inspect.iscoroutinefunction(run_analysis)
        assert result == 42
        assert "Completed run_analysis" in caplog.text

    def test_async_failure_reraised(self, caplog):
        @log_performance
        async def run_analysis():
            raise RuntimeError("union unavailable")

        with caplog.at_level(logging.INFO):
            with pytest.raises(RuntimeError):
                asyncio.run(run_analysis())

        assert "Failed run_analysis" in caplog.text
        assert "union unavailable" in caplog.text

    def test_metadata_preserved(self):
        @log_performance
        def run_query():
            """Run a query."""

        assert run_query.__name__ == "run_query"
        assert run_query.__doc__ == "Run a query."
