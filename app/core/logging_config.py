"""
Logging setup shared by the web app and the standalone sweep runner
"""
import logging
import os
from logging.handlers import RotatingFileHandler

from .config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

_configured = False


def setup_logging(log_file: str = "pharmatrack.log") -> None:
    """Console handler always, rotating file handler when LOGS_PATH is set"""
    global _configured
    if _configured:
        return

    handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    handlers.append(console_handler)

    if settings.LOGS_PATH:
        os.makedirs(settings.LOGS_PATH, exist_ok=True)
        # 50MB max, keep 7 files
        file_handler = RotatingFileHandler(
            os.path.join(settings.LOGS_PATH, log_file),
            maxBytes=50 * 1024 * 1024,
            backupCount=7,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    # Disable noisy loggers before basicConfig
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.basicConfig(level=settings.LOG_LEVEL.upper(), handlers=handlers)
    _configured = True
