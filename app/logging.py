import logging
import sys

from app.config import settings

_CONFIGURED = False


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure root logging once from LOG_LEVEL and LOG_FORMAT."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    resolved = (level or settings.log_level or "INFO").upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt or settings.log_format))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, resolved, logging.INFO))
    # uvicorn access lines duplicate the request metrics
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    _CONFIGURED = True
