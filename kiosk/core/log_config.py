"""
Logging setup shared by the API server and the headless scheduler

- Log rotation (50MB per file, keep 7 files)
- Reduced SQL / HTTP noise
"""
import logging
import os
from logging.handlers import RotatingFileHandler

from .config import settings


def setup_logging(log_name: str = "kiosk", level: int = logging.INFO) -> None:
    os.makedirs(settings.LOGS_PATH, exist_ok=True)

    # Create rotating file handler
    file_handler = RotatingFileHandler(
        os.path.join(settings.LOGS_PATH, f"{log_name}.log"),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    # Console handler (show in terminal)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))

    # IMPORTANT: Disable noisy loggers BEFORE basicConfig
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler], force=True)
