"""
structlog setup for applications embedding hypernav
"""
import logging
import sys

import structlog

from .config import Config


def configure_logging(config: Config = None):
    """Route structlog through the stdlib logger with the configured level and renderer."""
    log_config = (config or Config()).logging
    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if log_config.get('format', 'console') == 'json':
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger("hypernav")
