from __future__ import annotations

import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional, Union

PACKAGE_LOGGER = "ocean_tracking"

# Tag so repeated calls can tell a logger was set up here.
_LOGGER_MARK = "_ocean_tracking_logger_configured"

_DEFAULT_FMT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE)


def _coerce_level(level: Optional[Union[int, str]]) -> int:
    """
    Accepts logging levels as int or str (e.g., 'INFO', 'debug').
    Falls back to LOG_LEVEL env, then INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL") or None

    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return _LEVELS.get(level.strip().upper(), logging.INFO)
    return logging.INFO


class SecretMaskingFilter(logging.Filter):
    """Masks bearer tokens and known API keys in rendered log messages."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self.secrets = tuple(s for s in secrets if s and len(s) >= 4)

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        masked = _BEARER_RE.sub(r"\1***", msg)
        for s in self.secrets:
            masked = masked.replace(s, "***")
        if masked != msg:
            record.msg = masked
            record.args = None
        return True


def default_log_path_for_input(input_path: Union[str, Path]) -> Path:
    """/path/batch.xlsx -> /path/batch.log"""
    return Path(input_path).with_suffix(".log")


def get_logger(
    name: Optional[str] = PACKAGE_LOGGER,
    *,
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    propagate: bool = False,
    secrets: Iterable[str] = (),
    fmt: str = _DEFAULT_FMT,
    datefmt: str = _DEFAULT_DATEFMT,
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Create/configure a logger. Safe to call multiple times:
    - never duplicates a console or file handler
    - adds targets that are missing (e.g. a file added on a later call)
    - masks bearer tokens, plus any `secrets` passed in
    """
    logger = logging.getLogger(name)
    logger.setLevel(_coerce_level(level))
    logger.propagate = propagate

    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    def _has_console() -> bool:
        for h in logger.handlers:
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
                if getattr(h, "stream", None) in (sys.stderr, sys.stdout):
                    return True
        return False

    def _has_file(path: Path) -> bool:
        return any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == os.path.abspath(path)
            for h in logger.handlers
        )

    if console and not _has_console():
        sh = logging.StreamHandler(stream=sys.stderr)
        sh.setFormatter(formatter)
        sh.setLevel(logger.level)
        logger.addHandler(sh)

    if log_file is not None:
        log_path = Path(log_file)
        if not _has_file(log_path):
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
                delay=True,
            )
            fh.setFormatter(formatter)
            fh.setLevel(logger.level)
            logger.addHandler(fh)

    # handler-level so records from child loggers are masked too
    masker = SecretMaskingFilter(secrets)
    for h in logger.handlers:
        for f in list(h.filters):
            if isinstance(f, SecretMaskingFilter):
                h.removeFilter(f)
        h.addFilter(masker)

    setattr(logger, _LOGGER_MARK, True)
    return logger
