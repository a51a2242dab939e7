"""
Thread-safe rate-limited logging utilities.

Status polling repeats the same "still waiting" message every interval; this
keeps it to one line per message per interval while still logging state
changes immediately.
"""
import logging
import threading
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60

# one cache per interval, so a short-interval message cannot evict a long one
_log_caches = {}
_log_caches_lock = threading.RLock()


def _cache_for(interval: int) -> TTLCache:
    cache = _log_caches.get(interval)
    if cache is None:
        cache = TTLCache(maxsize=256, ttl=interval)
        _log_caches[interval] = cache
    return cache


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = DEFAULT_INTERVAL,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message with rate limiting, in a thread-safe manner.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical logs in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was logged, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _log_caches_lock:
        cache = _cache_for(interval)
        if key in cache:
            return False
        log_method(message)
        cache[key] = True
    return True


def reset_rate_limits() -> None:
    """Forget every suppressed message (used by tests)."""
    with _log_caches_lock:
        _log_caches.clear()
