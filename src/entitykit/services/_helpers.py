"""Shared service-layer helper functions."""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, TypeVar

from entitykit.domain.errors import OperationTimeout

logger = logging.getLogger(__name__)

_R = TypeVar("_R")


def call_with_timeout(func: Callable[[], _R], timeout: float | None, *, what: str) -> _R:
    """Run *func*, raising :class:`OperationTimeout` after *timeout* seconds.

    With ``timeout=None`` the call runs inline. Otherwise it runs on a
    dedicated worker thread under a copy of the caller's context, so bound
    log fields carry over. A timed-out call cannot be interrupted: its
    future travels on the exception as ``pending`` for callers that must
    know whether the call eventually took effect.
    """
    if timeout is None:
        return func()

    ctx = contextvars.copy_context()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="entitykit-call")
    try:
        future = executor.submit(ctx.run, func)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            msg = f"{what} timed out after {timeout:g}s"
            raise OperationTimeout(msg, pending=future) from None
    finally:
        executor.shutdown(wait=False)


def settle(exc: OperationTimeout) -> Any:
    """Wait for the call behind *exc* to finish and return its result.

    Returns None when there is nothing to wait for or the late call raised.
    """
    if exc.pending is None:
        return None
    try:
        return exc.pending.result()
    except Exception:
        logger.warning("Timed-out call failed late: %s", exc, exc_info=True)
        return None
