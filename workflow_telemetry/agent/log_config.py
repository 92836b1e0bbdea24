"""
Logging for the two kinds of telemetry processes.

CLI phases log to stderr, at DEBUG when `--verbose` is given. The detached
sampler has no terminal (its stdio is /dev/null), so it logs only to
`sampler.log` in the metrics directory, tagging each line with its pid so
output from a sampler replaced by a second `start` can be told apart.
"""
import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "workflow_telemetry"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
VERBOSE_CONSOLE_FORMAT = "[%(levelname)s] %(name)s - %(message)s"
SAMPLER_FILE_FORMAT = "%(asctime)s pid=%(process)d [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _reset(logger: logging.Logger, level: int) -> logging.Logger:
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False
    return logger


def setup_cli_logger(verbose: bool = False, name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Console logging for the start/stop/status/report commands"""
    level = logging.DEBUG if verbose else logging.INFO
    logger = _reset(logging.getLogger(name), level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(VERBOSE_CONSOLE_FORMAT if verbose else CONSOLE_FORMAT))
    logger.addHandler(handler)
    return logger


def setup_sampler_logger(log_file: Path, name: str = PACKAGE_LOGGER) -> logging.Logger:
    """File-only logging for the detached sampler, appended across runs"""
    logger = _reset(logging.getLogger(name), logging.INFO)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(SAMPLER_FILE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
