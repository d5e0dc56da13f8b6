"""Logging configuration for RepoWatch.

structlog is bridged into the standard logging module so that uvicorn,
SQLAlchemy and httpx records go through the same renderer as ours.
"""

import logging

import structlog
from structlog.stdlib import ProcessorFormatter
from structlog.typing import Processor

_PRE_CHAIN: tuple[Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.TimeStamper(fmt="iso"),
)


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def configure_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Configure structlog and the root logger.

    Args:
        level: Minimum level, as a number or a name such as ``"INFO"``.
        json_output: Render JSON lines instead of the console format.
    """
    min_level = _level_number(level)

    structlog.configure(
        processors=[*_PRE_CHAIN, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler = logging.StreamHandler()
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=_PRE_CHAIN))

    logging.captureWarnings(True)
    logging.basicConfig(level=min_level, handlers=[handler], force=True)
