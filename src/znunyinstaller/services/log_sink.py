"""Run log sink with secret redaction and rich console mirroring."""

import logging
import os
import re
import stat
from datetime import datetime
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from znunyinstaller.constants import LOG_FILE_MODE
from znunyinstaller.errors import WriteError

PLAIN = 25
logging.addLevelName(PLAIN, "PLAIN")

_SECRET_PATTERN = re.compile(r"(password|passwd|pwd)[:=][^\s]*", flags=re.IGNORECASE)
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def redact(message: str) -> str:
    """Replaces `password=...`-style tokens with `<key>:[HIDDEN]`."""
    return _SECRET_PATTERN.sub(lambda match: f"{match.group(1)}:[HIDDEN]", message)


class RedactingFormatter(logging.Formatter):
    """Formatter for the durable log file; never emits secret values."""

    def format(self, record: logging.LogRecord) -> str:
        original_levelname = record.levelname
        if record.levelno == logging.WARNING:
            record.levelname = "WARN"
        try:
            return redact(super().format(record))
        finally:
            record.levelname = original_levelname


class _BelowLevelFilter(logging.Filter):
    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def build_console_handlers() -> List[logging.Handler]:
    """Colour-coded console handlers: errors to stderr, everything else to stdout."""
    stdout_handler = RichHandler(
        console=Console(),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    stdout_handler.addFilter(_BelowLevelFilter(logging.ERROR))

    stderr_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    stderr_handler.setLevel(logging.ERROR)
    return [stdout_handler, stderr_handler]


def build_log_path(log_dir: str, now: Optional[datetime] = None) -> str:
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return os.path.join(log_dir, f"znuny-setup-{timestamp}.log")


class LogSink:
    """Owns the permissioned, append-only log file of one run."""

    def __init__(self, logger: logging.Logger, log_path: str, verbose: bool = False):
        self.logger = logger
        self.log_path = log_path
        self.verbose = verbose
        self.handler: Optional[logging.FileHandler] = None

    def open(self):
        try:
            os.makedirs(os.path.dirname(self.log_path) or ".", exist_ok=True)
            fd = os.open(self.log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, LOG_FILE_MODE)
            os.close(fd)
            os.chmod(self.log_path, LOG_FILE_MODE)
            mode = stat.S_IMODE(os.stat(self.log_path).st_mode)
        except OSError as exc:
            raise WriteError(f"Could not create log file '{self.log_path}': {exc}") from exc

        if mode & 0o077:
            raise WriteError(
                f"Log file '{self.log_path}' is accessible by other users (mode {oct(mode)})."
            )

        handler = logging.FileHandler(self.log_path, mode="a", encoding="utf-8")
        handler.setLevel(logging.DEBUG if self.verbose else logging.INFO)
        handler.setFormatter(RedactingFormatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        self.logger.addHandler(handler)
        if self.logger.level == logging.NOTSET or self.logger.level > handler.level:
            self.logger.setLevel(handler.level)
        self.handler = handler

    def close(self):
        if self.handler is None:
            return
        self.logger.removeHandler(self.handler)
        self.handler.close()
        self.handler = None
