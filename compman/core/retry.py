"""Backoff for flaky registry calls."""
import functools
import time
from typing import Callable, Iterator, Tuple, Type

from compman.core.logger import get_logger

logger = get_logger(__name__)

MAX_DELAY = 30.0


def backoff_delays(
    max_attempts: int, delay: float, backoff: float = 2.0, max_delay: float = MAX_DELAY
) -> Iterator[float]:
    """Yield the pause before each retry; max_attempts - 1 values, capped at max_delay."""
    current = delay
    for _ in range(max(max_attempts - 1, 0)):
        yield min(current, max_delay)
        current *= backoff


def retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    max_delay: float = MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
):
    """Call the wrapped function again when it raises one of ``exceptions``.

    Other exceptions pass straight through. The final failure is re-raised
    unchanged so callers can wrap it in their own error type.

    Example:
        fetch = retry(max_attempts=3, exceptions=(requests.Timeout,))(session.get)
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            pauses = backoff_delays(max_attempts, delay, backoff, max_delay)
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    pause = next(pauses, None)
                    if pause is None:
                        logger.debug(f"Giving up after {attempt} attempt(s): {e}")
                        raise
                    logger.warning(
                        f"Attempt {attempt}/{max_attempts} failed ({e}), retrying in {pause:.1f}s"
                    )
                    sleep(pause)
                    attempt += 1

        return wrapper

    return decorator
