from __future__ import annotations
import logging, os, sys
import structlog
import structlog.stdlib

def configure_logging(level: str | None = None):
    level_no = logging.getLevelName((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level_no, int):
        level_no = logging.INFO
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    structlog.configure(
        processors=[
            *shared,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        cache_logger_on_first_use=True,
    )
    # stdlib records (uvicorn, sqlalchemy, rq) go through the same JSON renderer
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared,
    ))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level_no)
