"""
FireSim Logging Configuration

Pipe-delimited log lines under the ``firesim`` logger tree, with a verbose
variant that adds source locations. HTTP client and access-log chatter is
held at WARNING unless the service runs at DEBUG.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(funcName)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER_NAME = "firesim"

# One line per image-model request or poll otherwise
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    verbose: bool = False,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure the ``firesim`` logger tree.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or number
        log_file: Also write to this file, creating its directory
        verbose: Include line numbers and function names
        console_output: Write to stdout

    Returns:
        The configured root ``firesim`` logger
    """
    level_no = _resolve_level(level)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level_no)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(VERBOSE_FORMAT if verbose else DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    quiet_level = logging.DEBUG if level_no <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    root_logger.info(f"Logging initialized - Level: {logging.getLevelName(level_no)}, Verbose: {verbose}")
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a FireSim component.

    ``get_logger("pipelines.orchestrator")`` returns ``firesim.pipelines.orchestrator``.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
