"""Timeout + retry wrapper for slow vendor calls (OpenAI mostly)."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CallTimeoutError(TimeoutError):
    """Raised when a wrapped call exceeds its timeout."""


def with_timeout_and_retry(fn: Callable[[], T], retries: int = 2, timeout: float = 30.0) -> T:
    """Call ``fn`` with a per-attempt timeout, retrying ``retries`` extra times.

    The last error (or a :class:`CallTimeoutError`) is re-raised once all
    attempts are spent. A timed-out attempt is abandoned, not cancelled.
    """
    attempt = 0
    last_error: Optional[BaseException] = None

    while attempt <= retries:
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(fn)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            last_error = CallTimeoutError('Request timed out')
        except Exception as e:
            last_error = e
        finally:
            executor.shutdown(wait=False)

        attempt += 1
        if attempt <= retries:
            logger.warning(f"Retrying call after error: {last_error} ({attempt}/{retries})")

    raise last_error  # type: ignore[misc]
