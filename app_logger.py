import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


def setup_logging() -> logging.Logger:
    level = getattr(logging, _DEFAULT_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logger = logging.getLogger("reservations")
    logger.setLevel(level)

    # one console handler, even when imported repeatedly
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("reservations")
    return base.getChild(name) if name else base


logger = setup_logging()
