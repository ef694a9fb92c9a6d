"""
Logging for the supply backend.

Every module gets its logger from ``setup_logger(name)``. Console output is
prefixed with the module name; everything (DEBUG and up) also goes to one
file per process run, shared with Werkzeug's request log.

    LOG_DIR    directory for run logs (default: backend/logs)
    LOG_LEVEL  console level name (default: INFO)
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path

RUN_LOG_PATTERN = 'supply_{started:%Y%m%d-%H%M%S}.log'
FILE_FORMAT = '%(asctime)s %(levelname)-8s %(name)s: %(message)s'
FILE_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class _RunLog:
    """The per-process log file, opened on first use."""

    def __init__(self):
        self.path: Path | None = None
        self.handler: logging.Handler | None = None

    def get_handler(self) -> logging.Handler:
        if self.handler is None:
            log_dir = Path(os.environ.get('LOG_DIR') or Path(__file__).resolve().parent / 'logs')
            log_dir.mkdir(parents=True, exist_ok=True)
            self.path = log_dir / RUN_LOG_PATTERN.format(started=datetime.now())

            handler = logging.FileHandler(self.path, encoding='utf-8')
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
            self.handler = handler

            # request lines from the Flask dev server land in the same file
            werkzeug = logging.getLogger('werkzeug')
            werkzeug.setLevel(logging.INFO)
            werkzeug.addHandler(handler)
        return self.handler


_run_log = _RunLog()


def console_level() -> int:
    level = logging.getLevelName(os.environ.get('LOG_LEVEL', 'INFO').strip().upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str) -> logging.Logger:
    """
    Return the logger for ``name``, attaching handlers the first time.

    Calling it again for the same name returns the same logger without
    adding handlers twice.
    """
    log = logging.getLogger(name)
    if log.handlers:
        return log

    console = logging.StreamHandler()
    console.setLevel(console_level())
    console.setFormatter(logging.Formatter(f'[{name}] %(message)s'))

    log.setLevel(logging.DEBUG)
    log.addHandler(console)
    log.addHandler(_run_log.get_handler())
    log.propagate = False
    return log


def get_current_log_file() -> str | None:
    """Path of this run's log file, or None before any logger was set up."""
    return str(_run_log.path) if _run_log.path else None
