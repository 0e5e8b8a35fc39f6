import sys
import logging
import structlog
from pythonjsonlogger import jsonlogger
from typing import Any, Dict, Optional

from captainhook.config.settings import settings, APP_VERSION


def setup_logging(level: Optional[str] = None, console: Optional[bool] = None):
    """
    Configure stdlib logging and structlog.

    Structlog events are handed to the standard library as a message plus
    ``extra`` fields, so uvicorn's own records and ours share one JSON
    formatter on stdout (picked up by journald under systemd).

    Args:
        level: Log level name, defaults to settings.log_level
        console: Use the colored console renderer instead of JSON lines.
            Defaults to True when the level is DEBUG.
    """
    level = (level or settings.log_level).upper()
    if console is None:
        console = level == "DEBUG"

    handler = logging.StreamHandler(sys.stdout)
    if console:
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level, logging.INFO))

    processors = [
        structlog.stdlib.filter_by_level,
        add_service_context,
    ]
    if console:
        processors += [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        # asctime, name and levelname come from the JSON formatter
        processors.append(structlog.stdlib.render_to_log_kwargs)

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def add_service_context(_, __, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to all log entries"""
    event_dict.update({
        "service": "captainhook",
        "version": APP_VERSION,
        "environment": "development" if settings.reload else "production"
    })
    return event_dict


def get_logger(name: str = None):
    """Get configured logger instance"""
    return structlog.get_logger(name) if name else structlog.get_logger()
