import logging
import os
from typing import List, Union

ROOT_NAME = "storefront"

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _coerce_level(value: Union[str, int, None]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def _handlers(level: int) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
    out: List[logging.Handler] = [logging.StreamHandler()]
    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            out.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError:
            logging.getLogger(ROOT_NAME).warning(f"LOG_FILE {log_file!r} could not be opened; console only")
    for h in out:
        h.setLevel(level)
        h.setFormatter(formatter)
    return out


def get_logger(name: str) -> logging.Logger:
    """Return a configured console logger with consistent formatting.

    - Honors LOG_LEVEL (default INFO) and LOG_FILE (optional path, appended).
    - Loggers live under the ``storefront`` namespace so tests can capture them.
    - Configures each logger only once, however often it is requested.
    """
    logger = logging.getLogger(f"{ROOT_NAME}.{name}")
    if getattr(logger, "_storefront_configured", False):
        return logger

    level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
    logger.setLevel(level)
    for handler in _handlers(level):
        logger.addHandler(handler)

    setattr(logger, "_storefront_configured", True)
    return logger


def set_level(level: Union[str, int, None]) -> int:
    """Change the level of every storefront logger created so far (CLI --log-level)."""
    resolved = _coerce_level(level)
    prefix = f"{ROOT_NAME}."
    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not name.startswith(prefix) or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(resolved)
        for h in logger.handlers:
            h.setLevel(resolved)
    return resolved

