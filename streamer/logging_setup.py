"""Logging configuration for the streamer process."""

import logging
import sys

from streamer.config import LogConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(cfg: LogConfig) -> logging.Logger:
    """Send log records to stderr, or append them to cfg.file when set."""
    if cfg.file:
        handler = logging.FileHandler(cfg.file, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=cfg.level, handlers=[handler], force=True)
    return logging.getLogger("streamer")
