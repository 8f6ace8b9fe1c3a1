"""Background event loop for hosts whose main thread must not block"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundRunner:
    """Runs coroutines on an event loop owned by a daemon thread

    GUI code submits work here and receives a ``concurrent.futures.Future``
    or a result callback. Callbacks run on the background thread; handing
    results to a UI thread is up to the caller.
    """

    def __init__(self, name: str = "oauth-background"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()
        self._lock = threading.Lock()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread (no-op if already running)"""
        with self._lock:
            if self.is_running:
                return
            self._started.clear()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
            self._thread.start()
        self._started.wait()

    def _run_loop(self) -> None:
        loop = self._loop
        asyncio.set_event_loop(loop)
        loop.call_soon(self._started.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            logger.debug(f"Background loop {self.name} closed")

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        """Schedule a coroutine on the background loop

        Args:
            coro: Coroutine to run

        Returns:
            Future resolved with the coroutine result
        """
        self.start()
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def run(
        self,
        task: Callable[[], Awaitable[T]],
        on_result: Callable[[T], None],
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> "concurrent.futures.Future[T]":
        """Run ``task`` in the background and hand its result to ``on_result``

        Args:
            task: Zero-argument callable returning an awaitable
            on_result: Receives the result
            on_error: Receives the exception; failures are logged if omitted

        Returns:
            Future of the task
        """
        async def _call() -> T:
            return await task()

        future = self.submit(_call())

        def _done(f: "concurrent.futures.Future[T]") -> None:
            if f.cancelled():
                return
            exc = f.exception()
            if exc is not None:
                if on_error is not None:
                    on_error(exc)
                else:
                    logger.error(f"Background task failed: {exc}", exc_info=exc)
                return
            on_result(f.result())

        future.add_done_callback(_done)
        return future

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop, cancelling unfinished tasks"""
        with self._lock:
            thread, loop = self._thread, self._loop
            self._thread = None
        if thread is None or loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout)

    def __enter__(self) -> "BackgroundRunner":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
