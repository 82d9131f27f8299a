"""
Logging setup for the API process.

``setup_logging`` attaches a console handler (and optionally a file
handler) to the root logger the first time it is called.  Every module
then logs through ``logging.getLogger(__name__)``.  Uvicorn's own
loggers are left alone apart from their level, so access logs keep
uvicorn's format.
"""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure the root logger exactly once.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"`` or ``"info"``.  Unknown names fall
        back to ``INFO``.
    logfile : Optional[str]
        When given, records are also appended to this file (UTF-8).  The
        parent directory is created if necessary.
    """
    root = logging.getLogger()
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if root.handlers:
        # Already configured (tests build the app repeatedly); only the
        # level may change between calls.
        root.setLevel(numeric_level)
        return

    root.setLevel(numeric_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if logfile:
        log_path = Path(logfile).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(numeric_level)
