import logging
import os

import structlog
from structlog.typing import EventDict

from .roles import Role

LOG_LEVEL_ENV_VAR = "WORKERBENCH_LOG_LEVEL"
LOG_FORMAT_ENV_VAR = "LOG_FORMAT"


def replace_level_with_severity(
    _: logging.Logger, __: str, event_dict: EventDict
) -> EventDict:
    """
    Replace the level field with a severity field as understood by Stackdriver
    logs.
    """
    if "level" in event_dict:
        event_dict["severity"] = event_dict.pop("level").upper()
    return event_dict


def bind_process_context(role: Role) -> None:
    """
    Tag every log line emitted from here on in this process (or thread) with
    its cluster role and pid.

    A forked worker starts with a copy of the primary's context, so whatever
    the primary bound is dropped before the worker binds its own.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(role=role.value, pid=os.getpid())


def log_level_from_env() -> int:
    # `WORKERBENCH_LOG_LEVEL=debug` shows config loading; anything unknown
    # falls back to INFO rather than failing startup.
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper())
    if not isinstance(level, int):
        return logging.INFO
    return level


def _shared_processors(development_logs: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        # Pulls in `role` and `pid` from bind_process_context, for uvicorn's
        # records as well as ours.
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if development_logs:
        # ConsoleRenderer prints tracebacks itself when `exc_info` is set.
        processors.append(structlog.dev.set_exc_info)
    else:
        # Outside development `exc_info` must be passed explicitly, and ends up
        # as a formatted `exception` field on the JSON line.
        processors.append(structlog.processors.format_exc_info)
        processors.append(replace_level_with_severity)

    # Log collectors expect a "message" field, not "event"
    processors.append(structlog.processors.EventRenamer("message"))
    return processors


def setup_logging(*, log_level: int = logging.NOTSET) -> None:
    """
    Send structlog and stdlib records (uvicorn's included) through one
    formatter on stderr: JSON lines by default, console output when
    LOG_FORMAT=development.

    Called once in the primary or standalone worker. Forked workers inherit
    the configured handler and share the primary's stderr, so a benchmark
    run produces a single interleaved stream that can be split by `pid` and
    `role`.
    """
    development_logs = os.environ.get(LOG_FORMAT_ENV_VAR, "") == "development"
    processors = _shared_processors(development_logs)

    structlog.configure(
        processors=processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if development_logs:
        log_renderer = structlog.dev.ConsoleRenderer(event_key="message")  # type: ignore
    else:
        log_renderer = structlog.processors.JSONRenderer()  # type: ignore

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            log_renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    # Replace rather than add, so calling this twice doesn't double every line
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    # Propagate uvicorn logs instead of letting uvicorn configure the format
    for name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        logging.getLogger(name).handlers.clear()
        logging.getLogger(name).propagate = True

    # One access line per request would swamp a throughput run
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
