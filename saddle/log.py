"""
Logging setup.

Routes structlog through the standard library root logger so that server
engine logs and plugin logs share one console handler.
"""

import logging

import structlog

shared_processors = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


class Formatter(structlog.stdlib.ProcessorFormatter):
    """Formatter rendering both structlog and plain logging records for the console."""

    def __init__(self, colors: bool = True) -> None:
        super().__init__(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=colors),
            ],
            foreign_pre_chain=shared_processors,
        )


def configure(debug: bool = False, colors: bool = True) -> None:
    """
    Configure structlog and the root logger.

    Args:
        debug: Log DEBUG records as well instead of INFO and above
        colors: Use colored console output
    """
    level = logging.DEBUG if debug else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    if not any(isinstance(h.formatter, Formatter) for h in root_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(Formatter(colors=colors))
        root_logger.addHandler(handler)


def get_logger(name: str = "saddle"):
    return structlog.get_logger(name)
