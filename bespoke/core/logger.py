from __future__ import annotations

"""
Process logging for the bespoke CLI and for hosts embedding the manager.

Everything at the configured level goes to the rotating `bespoke.log` under
the log directory. The console only carries warnings and errors unless
`verbose` is set, so `pkg list` / `pkg show` output on stdout is never mixed
with progress chatter.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "bespoke"
LOG_FILE = "bespoke.log"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def level_from_name(name: str) -> int:
    key = str(name or "").strip().upper()
    if key not in LEVELS:
        raise ValueError(f"Unknown log level: {name!r}")
    return int(getattr(logging, key))


def _console_handlers(logger: logging.Logger) -> list:
    return [h for h in logger.handlers if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)]


def setup_logging(log_dir: str = "logs", *, level: str = "INFO", verbose: bool = False) -> logging.Logger:
    """
    Configure the `bespoke` logger; safe to call again.

    A second call with another `log_dir` moves the file handler there (the
    CLI configures logging before the root is known, hosts may switch roots),
    and the levels are always re-applied.
    """
    os.makedirs(log_dir, exist_ok=True)
    file_level = level_from_name(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(file_level)
    logger.propagate = False

    text_path = os.path.abspath(os.path.join(log_dir, LOG_FILE))
    for h in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
        if h.baseFilename != text_path:
            logger.removeHandler(h)
            h.close()

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        fh = RotatingFileHandler(text_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logger.addHandler(fh)

    consoles = _console_handlers(logger)
    if not consoles:
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.addHandler(sh)
        consoles = [sh]
    for sh in consoles:
        sh.setLevel(file_level if verbose else max(file_level, logging.WARNING))

    return logger
