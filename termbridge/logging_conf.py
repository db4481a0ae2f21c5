#!/usr/bin/env python3
# termbridge/logging_conf.py
"""
Central logging setup for termbridge.
Console logs go to stderr so they never interleave with painted frames on
stdout. An optional rotating file log is added when configured.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from termbridge.config import Config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(cfg: Config) -> None:
    level_name = cfg["logging"].get("level", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)

    log_file = cfg["logging"].get("file")
    if log_file:
        handler = RotatingFileHandler(
            log_file,
            maxBytes=int(cfg["logging"].get("rotate_bytes", 5 * 1024 * 1024)),
            backupCount=int(cfg["logging"].get("rotate_keep", 3)),
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)

    # PIL logs every plugin import at DEBUG
    logging.getLogger("PIL").setLevel(max(level, logging.INFO))
