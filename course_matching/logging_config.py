import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from course_matching.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

CONSOLE_HANDLER = "course_matching.console"
FILE_HANDLER = "course_matching.file"


def setup_logging(log_dir: Optional[str] = None):
    """
    - Console + file (<LOG_DIR>/course_matching.log), rotated at 5MB
    - course_matching.* at LOG_LEVEL, SQL statements at SQL_LOG_LEVEL
    Safe to call more than once: handlers are added a single time.
    """
    level = settings.LOG_LEVEL.upper()

    root = logging.getLogger()
    root.setLevel(level)
    logging.getLogger("course_matching").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(settings.SQL_LOG_LEVEL.upper())

    if any(h.get_name() == FILE_HANDLER for h in root.handlers):
        return

    path = Path(log_dir or settings.LOG_DIR)
    path.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.set_name(CONSOLE_HANDLER)
    console.setLevel(level)
    console.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        path / "course_matching.log",
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.set_name(FILE_HANDLER)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)

    root.addHandler(console)
    root.addHandler(file_handler)
