import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any, timeout: float) -> T:
    """Run ``func(*args)`` on a private thread, raising ``asyncio.TimeoutError`` after ``timeout``.

    The thread is never joined: ``asyncio.run`` only waits on the loop's
    default executor, so a call stuck past the deadline finishes in the
    background while the caller moves on.
    """
    loop = asyncio.get_running_loop()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="blocking-call")
    try:
        return await asyncio.wait_for(loop.run_in_executor(executor, func, *args), timeout)
    finally:
        executor.shutdown(wait=False)
