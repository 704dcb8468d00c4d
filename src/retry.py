"""Retry with exponential backoff for outbound alert delivery."""
import time
import logging
from functools import wraps

logger = logging.getLogger("mailsense.retry")


class TransientError(Exception):
    """Delivery errors that may resolve on retry (network, rate limit, timeout)."""
    pass


class PermanentError(Exception):
    """Delivery errors that won't resolve on retry (bad number, missing credentials)."""
    pass


def with_retry(max_attempts=3, base_delay=1, max_delay=30, on_failure=None):
    """Decorator retrying a call with exponential backoff on TransientError.

    PermanentError and any other exception propagate immediately.

    Args:
        max_attempts: Maximum attempts, including the first call
        base_delay: Delay in seconds before the second attempt
        max_delay: Upper bound for any single delay
        on_failure: Optional callback(func_name, error, attempt) on each failure
    """
    def decorator(func):
        name = getattr(func, "__name__", repr(func))

        @wraps(func)
        def wrapper(*args, **kwargs):
            last_error = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except TransientError as e:
                    last_error = e
                    if on_failure is not None:
                        on_failure(name, e, attempt)
                    if attempt == max_attempts:
                        logger.error(
                            "Giving up on %s after %d attempts: %s",
                            name, max_attempts, e,
                        )
                        break
                    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                    logger.warning(
                        "%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                        name, attempt, max_attempts, e, delay,
                    )
                    time.sleep(delay)
            raise last_error
        return wrapper
    return decorator
