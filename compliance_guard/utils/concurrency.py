"""
Thread helpers shared by the sync and screening services.
"""

import threading
from concurrent.futures import Future, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Optional


class SingleFlight:
    """
    Collapses concurrent calls for the same key into one execution.

    The first caller for a key runs the function; callers arriving while it is
    in flight block and receive the same result (or exception).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[str, Future] = {}

    def do(self, key: str, func: Callable, *args, **kwargs) -> Any:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            return future.result()

        try:
            result = func(*args, **kwargs)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)


class DeadlineExceeded(Exception):
    """A call did not finish within its time limit."""

    def __init__(self, timeout: float):
        super().__init__(f"no result after {timeout} seconds")
        self.timeout = timeout


def call_with_timeout(func: Callable, timeout: Optional[float], *args,
                      thread_name: Optional[str] = None, **kwargs) -> Any:
    """
    Run func on a daemon thread and wait at most timeout seconds for it.

    Raises DeadlineExceeded when the deadline passes; exceptions raised by
    func itself, TimeoutError included, propagate unchanged. The worker thread
    is abandoned, not interrupted, so a hung call never blocks shutdown.
    """
    future = Future()

    def runner():
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = func(*args, **kwargs)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=runner, name=thread_name, daemon=True).start()
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError:
        if not future.done():
            raise DeadlineExceeded(timeout) from None
    # finished, or raised TimeoutError itself
    return future.result()
