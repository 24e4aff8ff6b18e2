"""Thread-safe memoization of per-key facts."""

import threading
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class KeyedMemo(Generic[K, V]):
    """Compute a value per key once and reuse it.

    The first caller for a key runs the computation; callers that arrive while it
    is running wait for the same result instead of computing it again. A failed
    computation is not remembered, so the next caller retries.
    """

    def __init__(self, compute: Callable[[K], V]) -> None:
        self._compute = compute
        self._lock = threading.Lock()
        self._futures: dict[K, Future[V]] = {}

    def get(self, key: K) -> V:
        """Get the value for a key, computing it on first use.

        Args:
            key: Cache key, passed to the compute function

        Returns:
            The memoized value

        Raises:
            Exception: Whatever the compute function raised
        """
        with self._lock:
            future = self._futures.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._futures[key] = future

        if owner:
            try:
                future.set_result(self._compute(key))
            except Exception as e:
                with self._lock:
                    if self._futures.get(key) is future:
                        del self._futures[key]
                future.set_exception(e)
        return future.result()

    def discard(self, key: K) -> None:
        """Forget the value for one key."""
        with self._lock:
            self._futures.pop(key, None)

    def clear(self) -> None:
        """Forget every value."""
        with self._lock:
            self._futures.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            future = self._futures.get(key)  # type: ignore[call-overload]
        return future is not None and future.done() and future.exception() is None

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)
