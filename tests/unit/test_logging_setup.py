from __future__ import annotations

import logging
from io import StringIO

from quiz_ingest.logging.init import (
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)


def test_setup_logging_configures_package_logger():
    logger = setup_logging()
    assert logger.name == "quiz_ingest"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    assert setup_logging() is setup_logging()
    assert get_logger() is setup_logging()
    assert len(get_logger().handlers) == 1


def test_labeled_prefixes_and_child_loggers():
    out = StringIO()
    setup_logging(stream=out)
    child = logging.getLogger("quiz_ingest.services.orchestrator")
    child.info("info line")
    child.warning("warn line")
    child.error("error line")
    child.debug("hidden")
    log_summary("upload=u-1 files=1")
    assert out.getvalue().splitlines() == [
        "INFO info line",
        "WARN warn line",
        "ERROR error line",
        "SUMMARY upload=u-1 files=1",
    ]


def test_debug_mode_emits_debug_lines():
    out = StringIO()
    setup_logging(debug=True, stream=out)
    logging.getLogger("quiz_ingest.services.merge").debug("strategy=skip")
    assert out.getvalue() == "DEBUG strategy=skip\n"


def test_summary_level_value():
    assert SUMMARY_LEVEL == 25
    record = logging.LogRecord("x", SUMMARY_LEVEL, __file__, 1, "done", None, None)
    assert LabeledFormatter().format(record) == "SUMMARY done"


def test_reset_logging_removes_handlers():
    logger = setup_logging()
    reset_logging()
    assert logger.handlers == []
    assert logger.propagate is True
