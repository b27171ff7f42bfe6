from __future__ import annotations

import logging
import logging.config
from pathlib import Path

LOG_FILE_NAME = "auto_reply.log"
QUIET_LOGGERS = ("googleapiclient", "google_auth_oauthlib", "urllib3")


def configure_logging(log_dir: Path, level: str = "INFO") -> Path:
    """Log scans to the console and to a rotating file under ``log_dir``."""

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "logfile": {"format": "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"},
                "terminal": {"format": "%(asctime)s %(levelname)s %(message)s", "datefmt": "%H:%M:%S"},
            },
            "handlers": {
                "rotating": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "formatter": "logfile",
                    "filename": str(log_path),
                    "maxBytes": 1_000_000,
                    "backupCount": 3,
                    "encoding": "utf-8",
                },
                "console": {"class": "logging.StreamHandler", "formatter": "terminal"},
            },
            # discovery and oauth chatter drowns the scan log at DEBUG
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"handlers": ["rotating", "console"], "level": level.upper()},
        }
    )
    logging.getLogger(__name__).debug("Logging to %s at %s", log_path, level)
    return log_path
