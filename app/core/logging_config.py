import logging
import sys
from rich.logging import RichHandler

from app.core.config import get_settings

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def _build_handler(rich: bool) -> logging.Handler:
    if rich:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        return handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    return handler

def setup_logging():
    """
    Configures the root logger once for the whole application.

    LOG_RICH picks between rich's console handler and plain timestamped
    lines on stdout. Uvicorn's loggers are pointed at the same handler so
    request logs share the format.
    """
    settings = get_settings()
    log_level = settings.LOG_LEVEL.upper()
    handler = _build_handler(settings.LOG_RICH)

    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    for name in ("uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = [handler]
        logging.getLogger(name).propagate = False

    # botocore logs every request at DEBUG
    logging.getLogger("botocore").setLevel(max(logging.getLevelName(log_level), logging.INFO))
    logging.getLogger(__name__).debug("Logging configured (level=%s, rich=%s)", log_level, settings.LOG_RICH)
