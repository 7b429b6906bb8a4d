"""structlog setup shared by the API process and the CLI.

Production renders one JSON object per line; every other environment gets
the colored console renderer. Values under credential-like keys are masked
and long strings (page text, raw model replies) are clipped before rendering.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor

SENSITIVE_KEY_PARTS: tuple[str, ...] = (
    "api_key",
    "password",
    "secret",
    "token",
    "authorization",
    "cookie",
)
# Usage counters, not credentials.
COUNTER_KEYS: frozenset[str] = frozenset({"tokens_in", "tokens_out", "max_tokens"})
REDACTED = "***REDACTED***"
MAX_VALUE_CHARS = 500

NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "trafilatura", "uvicorn.access")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if lowered in COUNTER_KEYS:
        return False
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def _scrub(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credentials (``perplexity_api_key`` too) and clip oversized strings."""
    for key, value in event_dict.items():
        if key == "event":
            continue
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        elif isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
            event_dict[key] = f"{value[:MAX_VALUE_CHARS]}...[{len(value)} chars]"
    return event_dict


def _renderer(environment: str) -> Processor:
    if environment == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def configure_logging(environment: str = "development", log_level: str = "INFO") -> None:
    """Route structlog through a single stdout handler on the root logger.

    Args:
        environment: ``production`` selects JSON lines.
        log_level: Root level name, e.g. ``DEBUG``.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            _scrub,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(environment),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
