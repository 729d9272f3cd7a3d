"""Bounded exponential backoff for transient database failures."""
import functools
import logging
import time

from django.conf import settings
from django.db import InterfaceError, OperationalError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def _setting(name, default):
    return getattr(settings, "ELECTIONS", {}).get(name, default)


def with_retry(func=None, *, attempts_setting="READ_RETRY_ATTEMPTS", sleep=time.sleep):
    """Retry ``func`` on transient database errors.

    Only wrap reads, idempotent writes, or a whole atomic transaction:
    a retried call must not be able to apply its side effects twice.
    """
    if func is None:
        return functools.partial(with_retry, attempts_setting=attempts_setting, sleep=sleep)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        attempts = max(1, int(_setting(attempts_setting, 3)))
        delay = float(_setting("READ_RETRY_BASE_DELAY", 0.05))
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except TRANSIENT_ERRORS as exc:
                if attempt == attempts:
                    raise
                logger.warning("%s failed with %s, retrying in %.3fs (%d/%d)",
                               func.__qualname__, exc, delay, attempt, attempts)
                sleep(delay)
                delay *= 2
    return wrapper
