import structlog

from commonlog.config import Config, settings

logger = structlog.get_logger()


def configure_logging(debug: bool = False, fmt: str | None = None):
    """Opt-in structlog setup for applications that don't configure their own."""
    fmt = fmt or settings.LOG_FORMAT
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if fmt == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if debug else 20),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def debug_log(cfg: Config, event: str, **kw):
    """Emit a dispatch trace, only when the caller enabled Config.debug."""
    if cfg.debug:
        logger.debug(event, **kw)
