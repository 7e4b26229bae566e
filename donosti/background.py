"""Helpers for running blocking work from async request handlers."""
from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from functools import partial
from typing import Any, Callable, Optional


async def run_sync(func: Callable[..., Any], *args: Any, loop: Optional[asyncio.AbstractEventLoop] = None,
                   executor: Optional[Executor] = None, **kwargs: Any) -> Any:
    """Execute blocking code in the default executor and await the result."""
    event_loop = loop or asyncio.get_running_loop()
    bound = partial(func, *args, **kwargs)
    return await event_loop.run_in_executor(executor, bound)


__all__ = ["run_sync"]
