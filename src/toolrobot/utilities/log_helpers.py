import contextlib
import logging

LOG_FMT = "%(asctime)s - %(levelname)-8s - %(name)s - %(funcName)s:%(lineno)d - %(message)s"


def basic_log_config(level: int | str = logging.WARNING, name: str = "toolrobot") -> logging.Logger:
    """Send toolrobot logs to stderr using `LOG_FMT`.

    Only the named logger is configured; the root logger and other libraries are left alone.
    Calling this again updates the level without adding another handler.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not any(getattr(h, "_toolrobot", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FMT))
        handler._toolrobot = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


@contextlib.contextmanager
def suppress_logs(logger: logging.Logger | str, level: int = logging.ERROR):
    """Temporarily drop records below `level` from a logger, e.g. griffe's warnings while reading docstrings."""
    if isinstance(logger, str):
        logger = logging.getLogger(logger)
    previous = logger.level
    logger.setLevel(level)
    try:
        yield logger
    finally:
        logger.setLevel(previous)
