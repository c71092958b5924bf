"""
Async Bridge
============

The Hugging Face logo client is written with aiohttp; Flask views and
Celery tasks call it through :func:`run_async_safely`.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def run_async_safely(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion and return its result.

    ``asyncio.run`` cannot nest, so when this thread already runs a loop the
    coroutine gets a private loop on a one-off worker thread. Exceptions
    raised by the coroutine propagate unchanged.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    logger.debug("Event loop already running; running %s on a worker thread", coro)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix='sitegen-async') as executor:
        return executor.submit(asyncio.run, coro).result()
