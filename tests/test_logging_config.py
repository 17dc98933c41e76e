# tests/test_logging_config.py

import logging

import pytest

from course_matching.logging_config import CONSOLE_HANDLER, FILE_HANDLER, setup_logging


@pytest.fixture
def root_logger():
    """Detach this project's handlers for the test and restore them afterwards."""
    root = logging.getLogger()
    ours = [h for h in root.handlers if h.get_name() in (CONSOLE_HANDLER, FILE_HANDLER)]
    level = root.level
    for h in ours:
        root.removeHandler(h)
    yield root
    for h in list(root.handlers):
        if h.get_name() in (CONSOLE_HANDLER, FILE_HANDLER):
            root.removeHandler(h)
            h.close()
    for h in ours:
        root.addHandler(h)
    root.setLevel(level)


def _ours(root):
    return [h for h in root.handlers if h.get_name() in (CONSOLE_HANDLER, FILE_HANDLER)]


def test_writes_to_project_log_file(root_logger, tmp_path):
    setup_logging(log_dir=str(tmp_path / "logs"))

    logging.getLogger("course_matching.test").warning("hello")

    (file_handler,) = [h for h in root_logger.handlers if h.get_name() == FILE_HANDLER]
    file_handler.flush()
    log_file = tmp_path / "logs" / "course_matching.log"
    assert file_handler.baseFilename == str(log_file)
    assert "course_matching.test | hello" in log_file.read_text(encoding="utf-8")


def test_second_call_adds_no_handlers(root_logger, tmp_path):
    setup_logging(log_dir=str(tmp_path))
    setup_logging(log_dir=str(tmp_path))

    assert sorted(h.get_name() for h in _ours(root_logger)) == [CONSOLE_HANDLER, FILE_HANDLER]


def test_sql_logger_kept_quiet(root_logger, tmp_path):
    setup_logging(log_dir=str(tmp_path))

    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
