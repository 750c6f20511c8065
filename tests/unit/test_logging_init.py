from __future__ import annotations

import json
import logging
import sys
from io import StringIO
from pathlib import Path

import gridcore.logging.init as log_init
from gridcore.logging.error_log import ErrorLogBuffer
from gridcore.logging.init import LabeledFormatter, SUMMARY_LEVEL, get_logger, log_summary, setup_logging
from gridcore.models.error_record import BatchErrorRecord


def _capture(logger: logging.Logger) -> StringIO:
    out = StringIO()
    logger.handlers[0].setStream(out)
    return out


def test_setup_logging_is_idempotent():
    log_init.reset_logging()
    logger = setup_logging()
    assert logger.name == "gridcore"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert not logger.propagate
    assert setup_logging() is logger
    assert get_logger() is logger


def test_labeled_prefixes_and_child_loggers():
    """Service modules log via child loggers and get the same labels."""
    log_init.reset_logging()
    out = _capture(setup_logging())

    logging.getLogger("gridcore.services.batch").info("import completed")
    logging.getLogger("gridcore.services.row_manager").warning("delete rejected")
    log_summary("rows=1")

    assert out.getvalue().splitlines() == [
        "INFO import completed",
        "WARN delete rejected",
        "SUMMARY rows=1",
    ]


def test_set_debug_toggles_level():
    log_init.reset_logging()
    logger = setup_logging()
    log_init.set_debug(True)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)
    log_init.set_debug(False)
    assert logger.level == logging.INFO


def test_formatter_appends_traceback():
    formatter = LabeledFormatter()
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("gridcore", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    text = formatter.format(record)
    assert text.startswith("ERROR failed\n")
    assert "ValueError: boom" in text


def test_summary_level_sits_between_info_and_warning():
    assert logging.INFO < SUMMARY_LEVEL < logging.WARNING


class TestErrorLogBuffer:
    def test_flush_writes_json_lines(self, temp_workdir: Path):
        buf = ErrorLogBuffer()
        buf.append(BatchErrorRecord.create("import", 1, "MALFORMED_ROW", "expected a mapping"))
        buf.append(BatchErrorRecord.create("validate", 2, "VALIDATION_ERROR", "Name is required", "Name"))
        path = buf.flush()
        assert path.exists()
        assert path.parent == Path("logs")
        assert path.name.startswith("errors-") and path.suffix == ".log"
        # ファイル内容検証
        lines = path.read_text(encoding="utf-8").strip().splitlines()
        assert len(lines) == 2
        for raw in lines:
            obj = json.loads(raw)
            assert set(obj.keys()) == {"timestamp", "operation", "row", "column", "error_type", "message"}
        assert len(buf) == 0

    def test_empty_flush_creates_nothing(self, temp_workdir: Path):
        buf = ErrorLogBuffer(temp_workdir / "other")
        assert buf.flush() is None
        assert not (temp_workdir / "other").exists()

    def test_multiple_flushes_append_to_same_file(self, temp_workdir: Path):
        buf = ErrorLogBuffer()
        buf.append(BatchErrorRecord.create("import", 1, "MALFORMED_ROW", "x"))
        path = buf.flush()
        size1 = path.stat().st_size
        buf.append(BatchErrorRecord.create("import", 2, "MALFORMED_ROW", "y"))
        path2 = buf.flush()
        assert path == path2
        assert path2.stat().st_size > size1
