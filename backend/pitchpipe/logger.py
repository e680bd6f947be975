import logging
import sys
from pythonjsonlogger.json import JsonFormatter
from .config import settings

SERVICE_NAME = "pitchpipe"

def setup_logger(name: str = SERVICE_NAME, level: str = settings.LOG_LEVEL) -> logging.Logger:
    """
    Structured JSON logging shared by the API, the Celery workers and the
    scripts. Context goes in `extra={...}` (job_id, status, provider...).
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.propagate = False

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            static_fields={"service": SERVICE_NAME},
        )
    )
    logger.addHandler(handler)
    return logger

logger = setup_logger()
