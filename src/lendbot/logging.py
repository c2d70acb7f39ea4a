"""structlog setup shared by the scheduler, the pipelines and the API.

Every module logs through ``get_logger(__name__)`` with snake_case event
names and keyword context. Scheduler jobs bind ``job`` and ``iteration``
through contextvars, so concurrent jobs never see each other's context.
"""

import logging
import os

import structlog

# Client libraries that log every HTTP request at INFO.
_QUIET_LOGGERS = ("httpx", "openai")


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Route structlog and stdlib logging through one stderr handler.

    ``log_format`` is "json" or "console"; when omitted the LOG_FORMAT
    environment variable decides, falling back to console output.
    """
    log_format = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_job_context(job: str, iteration: int) -> None:
    """Attach job name and iteration to every log line of the current task."""
    structlog.contextvars.bind_contextvars(job=job, iteration=iteration)


def clear_job_context() -> None:
    structlog.contextvars.unbind_contextvars("job", "iteration")
