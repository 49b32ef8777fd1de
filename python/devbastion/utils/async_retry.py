"""
devbastion/utils/async_retry.py

Provides a decorator to retry an async function on selected transient errors.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Tuple, Type
from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def async_retry(
    retries: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    noisy: bool = False,
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Decorates an async function to retry when it raises one of `retry_on`.

    Exceptions outside `retry_on` propagate on the first attempt. After
    `retries` total attempts the last exception propagates unchanged.

    Args:
        retries (int, optional):
            Maximum number of total attempts (not just failures). Defaults to 3.
        delay (float, optional):
            Delay in seconds between attempts. Defaults to 1.0.
        retry_on (Tuple[Type[BaseException], ...], optional):
            Exception types worth another attempt. Defaults to (Exception,).
        noisy (bool, optional):
            If True, logs a warning on each retried failure. Defaults to False.

    Returns:
        A decorator producing the retrying wrapper.
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, R]]
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            for attempt_number in range(1, retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if attempt_number >= retries:
                        raise
                    if noisy:
                        logger.warning(
                            "Attempt %d/%d for function %r failed: %s",
                            attempt_number,
                            retries,
                            func.__qualname__,
                            exc,
                        )
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable: retries must be at least 1")

        return wrapper

    return decorator
