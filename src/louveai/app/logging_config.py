"""Session logging for LouveAI.

Every CLI invocation appends to one session log so a failed generation can be
traced after the command has exited. The console stays reserved for Rich
output; nothing here writes to stdout or stderr.
"""

import logging
from pathlib import Path
from typing import Union

from louveai import __version__

LOG_FILENAME = "louveai.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# Third-party loggers that share the session file, capped at WARNING so SDK
# retries and transport errors show up without request-level chatter.
SDK_LOGGERS = ("openai", "httpx")

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"


def _backup_path(log_file: Path, index: int) -> Path:
    return log_file.with_name(f"{log_file.name}.{index}")


def _rotate_log_if_needed(log_file: Path) -> bool:
    """Shift louveai.log -> .1 -> .2 ... when the log has outgrown MAX_LOG_BYTES.

    The oldest backup beyond LOG_BACKUP_COUNT is discarded.

    Returns:
        True if the log was rotated
    """
    if not log_file.exists() or log_file.stat().st_size < MAX_LOG_BYTES:
        return False

    _backup_path(log_file, LOG_BACKUP_COUNT).unlink(missing_ok=True)
    for index in range(LOG_BACKUP_COUNT - 1, 0, -1):
        source = _backup_path(log_file, index)
        if source.exists():
            source.rename(_backup_path(log_file, index + 1))
    log_file.rename(_backup_path(log_file, 1))
    return True


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def setup_logging(log_dir: Path, level: Union[int, str] = logging.DEBUG) -> logging.Logger:
    """Point the louveai logger tree at the session log file.

    Safe to call more than once per process; earlier handlers are closed
    and replaced.

    Args:
        log_dir: Directory holding louveai.log and its backups
        level: Level name or number for louveai's own loggers

    Returns:
        The top-level "louveai" logger

    Raises:
        ValueError: If level is not a known level name
    """
    level = _resolve_level(level)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME
    rotated = _rotate_log_if_needed(log_file)

    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger("louveai")
    _reset_handlers(logger)
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(file_handler)

    for name in SDK_LOGGERS:
        sdk_logger = logging.getLogger(name)
        _reset_handlers(sdk_logger)
        sdk_logger.setLevel(logging.WARNING)
        sdk_logger.addHandler(file_handler)

    logger.info("=" * 80)
    logger.info(f"LOUVEAI {__version__} SESSION STARTED (level {logging.getLevelName(level)})")
    if rotated:
        logger.info(f"Previous log rotated to {_backup_path(log_file, 1).name}")
    logger.info("=" * 80)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the "louveai" tree.

    Args:
        name: Module name (usually __name__)
    """
    if name == "louveai" or name.startswith("louveai."):
        return logging.getLogger(name)
    return logging.getLogger(f"louveai.{name}")
