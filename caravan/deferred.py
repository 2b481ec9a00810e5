"""
Deferred callbacks: "run this later, don't make me wait".

defer(callback) queues a zero-argument callback on a background daemon thread and
returns immediately. Callbacks run one at a time in submission (FIFO) order; there is
no other ordering guarantee, in particular none relative to tasks of a concurrent
Executor.run().

Errors
- an exception raised by a callback is wrapped in DeferredCallbackError (the original
  error as __cause__) and handed to the process-wide fault sink (faults.report). It is
  never raised back at the defer() call site.

Exit-time behavior
- the module-level queue is flushed by an atexit hook: callbacks submitted before the
  interpreter starts shutting down are run before it exits. A callback that never
  returns therefore blocks exit; flush(timeout) is available to bound the wait
  explicitly.
- Deferrer instances created by callers are not flushed at exit unless the caller
  registers their flush() themselves.
"""
import atexit
import threading
from collections import deque

from .faults import DeferredCallbackError, report


class Deferrer:
    """
    FIFO queue of callbacks drained by a single lazily-started daemon thread.

    parameters
    - name: thread name, useful in tracebacks and debuggers.
    """

    def __init__(self, name="caravan-deferred"):
        if not isinstance(name, str):
            raise TypeError("Deferrer() argument must be a string")
        self._name = name
        self._callbacks = deque()
        self._condition = threading.Condition()
        self._pending = 0
        self._thread = None

    @property
    def pending(self):
        """number of callbacks queued or running."""
        with self._condition:
            return self._pending

    def defer(self, callback, /):
        if not callable(callback):
            raise TypeError("defer() argument must be callable")
        with self._condition:
            self._callbacks.append(callback)
            self._pending += 1
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(target=self._drain, name=self._name, daemon=True)
                self._thread.start()
            self._condition.notify_all()

    def flush(self, timeout=None):
        """
        block until every callback submitted so far has run.

        returns
        - True when the queue drained, False when `timeout` seconds elapsed first.
        """
        with self._condition:
            return self._condition.wait_for(lambda: not self._pending, timeout)

    def _drain(self):
        while True:
            with self._condition:
                while not self._callbacks:
                    self._condition.wait()
                callback = self._callbacks.popleft()
            try:
                callback()
            except BaseException as error:  # keep the drain thread alive for later callbacks
                fault = DeferredCallbackError(
                    f"deferred callback {getattr(callback, '__qualname__', repr(callback))} raised: {str(error) or type(error).__name__}",
                    hint="deferred callbacks report errors here instead of raising them"
                )
                fault.__cause__ = error
                report(fault)
            finally:
                with self._condition:
                    self._pending -= 1
                    self._condition.notify_all()

    def __repr__(self):
        return f"Deferrer(name={self._name!r}, pending={self.pending})"


_deferrer = Deferrer()


def defer(callback, /):
    """schedule `callback` on the process-wide deferred queue without blocking."""
    _deferrer.defer(callback)


def flush(timeout=None):
    """wait for the process-wide deferred queue to drain (see Deferrer.flush)."""
    return _deferrer.flush(timeout)


atexit.register(flush)


__all__ = (
    "Deferrer",
    "defer",
    "flush",
)
