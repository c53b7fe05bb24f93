"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Tracking of fire-and-forget tasks (background refreshes, migrations, batches).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger("cachify.background")

_ACTIVE_TASKS: set[asyncio.Task[Any]] = set()


def spawn_background(
    coro: Coroutine[Any, Any, Any],
    *,
    wait_until: Callable[[asyncio.Task[Any]], None] | None = None,
) -> asyncio.Task[Any]:
    """Start `coro` as a task that is kept alive until it finishes."""
    task = asyncio.ensure_future(coro)
    _ACTIVE_TASKS.add(task)
    task.add_done_callback(_ACTIVE_TASKS.discard)
    if wait_until is not None:
        wait_until(task)
    return task


def active_background_count() -> int:
    """Number of background tasks still running."""
    return len(_ACTIVE_TASKS)


async def drain_background_tasks(timeout_s: float | None = None) -> None:
    """
    Wait until every background task (including ones spawned meanwhile) is done.

    Args:
        timeout_s: Optional overall bound; tasks still running afterwards are
            left alone.
    """
    loop = asyncio.get_running_loop()
    deadline = None if timeout_s is None else loop.time() + timeout_s
    while True:
        current = [task for task in _ACTIVE_TASKS if task.get_loop() is loop]
        if not current:
            return
        remaining = None if deadline is None else max(0.0, deadline - loop.time())
        _, pending = await asyncio.wait(current, timeout=remaining)
        if pending:
            logger.info("Stopped waiting for %d background tasks", len(pending))
            return
