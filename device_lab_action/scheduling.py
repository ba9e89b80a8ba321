"""Sleep abstraction shared by the retry and polling loops."""

import asyncio
from collections.abc import Awaitable, Callable

type Sleep = Callable[[float], Awaitable[None]]


async def real_sleep(seconds: float) -> None:
    """Block the run for the given number of seconds."""
    await asyncio.sleep(seconds)
