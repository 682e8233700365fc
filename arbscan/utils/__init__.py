from .logger import setup_logging, get_logger, ContextLogger, JSONFormatter
from .retry import RetryConfig, with_retry
from .utcnow import utcnow, make_aware, utcfromtimestamp

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "ContextLogger",
    "JSONFormatter",
    # Retry
    "RetryConfig",
    "with_retry",
    # Time
    "utcnow",
    "make_aware",
    "utcfromtimestamp",
]
