from __future__ import annotations

"""Run blocking collaborator calls off the event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

from src.rag.errors import RAGError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_upstream(
    operation: str,
    func: Callable[..., T],
    *args: Any,
    timeout: float | None = None,
) -> T:
    """Run a blocking call in a worker thread and normalize its failures.

    Errors already in the RAG taxonomy propagate unchanged; anything else
    is wrapped in UpstreamError. A positive timeout bounds the call; a
    timeout raised by the call itself is an ordinary failure.
    """
    budget = timeout if timeout and timeout > 0 else None
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        done, _ = await asyncio.wait({task}, timeout=budget)
    finally:
        if not task.done():
            task.cancel()
    if not done:
        logger.error("upstream_timeout", extra={"operation": operation, "timeout": budget})
        raise UpstreamError(f"{operation} timed out after {budget:g}s")
    try:
        return task.result()
    except RAGError:
        raise
    except Exception as exc:
        logger.error(
            "upstream_failed",
            extra={"operation": operation, "detail": type(exc).__name__},
        )
        raise UpstreamError(f"{operation} failed: {exc}") from exc
