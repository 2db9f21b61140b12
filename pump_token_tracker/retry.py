from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


class EmptyResultError(Exception):
    pass


async def retry_async(
    operation: Callable[[], Awaitable[Optional[T]]],
    attempts: int = 3,
    delay_sec: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    logger: Optional[logging.Logger] = None,
    label: str = "operation",
) -> T:
    """Run ``operation`` up to ``attempts`` times with a fixed delay between tries.

    A ``None`` result counts as a failed try. The last error is re-raised once
    the attempts are used up (``EmptyResultError`` when every try came back empty).
    """
    attempts = max(1, attempts)
    last_exc: BaseException = EmptyResultError(label)
    for attempt in range(attempts):
        try:
            result = await operation()
            if result is not None:
                return result
            last_exc = EmptyResultError(label)
        except retry_on as exc:
            last_exc = exc
        if logger is not None:
            logger.debug(
                "retry_attempt_failed",
                extra={"label": label, "attempt": attempt + 1, "error": str(last_exc)},
            )
        if attempt + 1 < attempts:
            await asyncio.sleep(delay_sec)
    raise last_exc


async def retry_with_default(
    operation: Callable[[], Awaitable[Optional[T]]],
    default: Callable[[], T],
    attempts: int = 3,
    delay_sec: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    logger: Optional[logging.Logger] = None,
    label: str = "operation",
) -> T:
    try:
        return await retry_async(
            operation,
            attempts=attempts,
            delay_sec=delay_sec,
            retry_on=retry_on,
            logger=logger,
            label=label,
        )
    except (EmptyResultError,) + tuple(retry_on) as exc:
        if logger is not None:
            logger.warning("retry_exhausted", extra={"label": label, "error": str(exc)})
        return default()
