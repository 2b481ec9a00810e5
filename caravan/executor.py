"""
Bounded concurrent task executor.

What this module provides
- Executor: runs a mapping of key -> zero-argument callable under a concurrency cap
  and returns a complete ResultSet once every task has finished, failed, timed out
  or been cancelled.
- Cancellation: thread-safe token to stop admitting queued tasks.
- run(tasks, config): one-shot shortcut for Executor(config).run(tasks).
- concurrently(tasks): run every task at once and return plain values, raising
  TaskExit if any of them failed.

Execution model
- min(concurrency, len(tasks)) worker threads pull (key, task) pairs from a shared
  FIFO. A worker takes the next pair only after its current task completes, so at
  most `concurrency` bodies run at once and every task is eventually started.
- Task errors are captured at the task boundary as Failure outcomes; they never
  propagate out of run() and never stop sibling tasks.
- With a timeout, each body runs in its own daemon thread and the worker waits for
  it. A body still running when the timeout expires is abandoned: it is recorded
  as Failure("timeout"), keeps running unobserved, and a TaskAbandonedWarning is
  reported through the fault sink since it may still hold external resources.
- On cancellation (token or KeyboardInterrupt in the waiting thread), queued tasks
  are not started, active tasks are allowed to finish and keep their outcomes, and
  every task without an outcome is recorded as Failure("cancelled").

Example
    from caravan import Executor, ExecutorConfig

    executor = Executor(ExecutorConfig(4, timeout=30))
    results = executor.run({url: functools.partial(fetch, url) for url in urls})
    if not results.ok:
        ...
"""
import copy
import threading
from collections import deque
from collections.abc import Mapping

from .config import ExecutorConfig
from .faults import (
    CallbackError,
    CancelledFailure,
    TaskAbandonedWarning,
    TaskFailure,
    TimeoutFailure,
    report,
)
from .outcomes import Failure, ResultSet, Success
from .utils import Unset, rename

# How long the waiting thread sleeps between checks; bounds KeyboardInterrupt latency.
_INTERVAL = 0.05


class Cancellation:
    """
    thread-safe request to stop an in-flight run().

    cancel() may be called from any thread (a signal handler, a progress callback,
    another task). It is idempotent and cannot be undone.
    """
    __slots__ = ("_event",)

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()

    def wait(self, timeout=None):
        return self._event.wait(timeout)

    def __repr__(self):
        return f"Cancellation(cancelled={self.cancelled})"


def _describe(error):
    try:
        return str(error) or type(error).__name__
    except BaseException:
        return type(error).__name__


def _failure(key, error):
    fault = TaskFailure(_describe(error), key=key)
    fault.__cause__ = error
    return Failure(fault)


def _attempt(key, task):
    try:
        return Success(task())
    except BaseException as error:  # SystemExit in a worker must still become an outcome
        return _failure(key, error)


class _Invocation:
    """
    per-call state of Executor.run(): queue, outcomes and worker bookkeeping.

    kept apart from Executor so an executor carries nothing between calls.
    """

    def __init__(self, config, tasks, cancellation, callback):
        self.config = config
        self.tasks = tasks
        self.cancellation = cancellation
        self.callback = callback
        self.pending = deque(tasks.items())
        self.outcomes = {}
        self.lock = threading.Lock()
        self.finished = threading.Event()
        self.active = 0

    def __call__(self):
        if not self.tasks:
            return ResultSet()

        workers = [
            threading.Thread(target=self._work, name=f"caravan-worker-{index}", daemon=True)
            for index in range(min(self.config.concurrency, len(self.tasks)))
        ]
        self.active = len(workers)

        try:
            for worker in workers:
                worker.start()
            while not self.finished.wait(_INTERVAL):
                pass
        except KeyboardInterrupt:
            self.cancellation.cancel()
            # a worker without an ident never reached _next(), so it will not take a task
            for worker in workers:
                if worker.ident is not None:
                    worker.join()

        with self.lock:
            outcomes = dict(self.outcomes)
        return ResultSet({
            key: outcomes[key] if key in outcomes else Failure(CancelledFailure(key=key))
            for key in self.tasks
        })

    def _next(self):
        with self.lock:
            if self.cancellation.cancelled or not self.pending:
                return None
            return self.pending.popleft()

    def _work(self):
        try:
            while (item := self._next()) is not None:
                key, task = item
                try:
                    outcome = self._execute(key, task)
                except BaseException as error:
                    outcome = _failure(key, error)
                self._record(key, outcome)
        finally:
            with self.lock:
                self.active -= 1
                if not self.active:
                    self.finished.set()

    def _execute(self, key, task):
        if self.config.timeout is None:
            return _attempt(key, task)

        box = []

        @rename(f"task[{key!r}]")
        def body():
            box.append(_attempt(key, task))

        thread = threading.Thread(target=body, name=f"caravan-task-{key}", daemon=True)
        thread.start()
        thread.join(self.config.timeout)
        if thread.is_alive():
            report(TaskAbandonedWarning(
                f"task {key!r} exceeded {self.config.timeout:g}s and was left running",
                key=key,
                hint="make the task honour its own deadline if it holds external resources"
            ))
            return Failure(TimeoutFailure(key=key))
        return box[0]

    def _record(self, key, outcome):
        with self.lock:
            self.outcomes[key] = outcome
        if self.callback is None:
            return
        try:
            self.callback(key, outcome)
        except BaseException as error:
            fault = CallbackError(f"progress callback raised for task {key!r}: {_describe(error)}", key=key)
            fault.__cause__ = error
            report(fault)


def _validate(tasks):
    if not isinstance(tasks, Mapping):
        raise TypeError("run() argument must be a mapping of keys to callables")
    for key, task in tasks.items():
        if isinstance(key, bool) or not isinstance(key, str | int):
            raise TypeError(f"run() task key must be a string or an integer, got {type(key).__name__}")
        if not callable(task):
            raise TypeError(f"run() task {key!r} must be callable")
    return dict(tasks)


class Executor:
    """
    bounded concurrent task executor.

    parameters
    - config: ExecutorConfig (positional-only). When omitted, one is built from
      **overrides (concurrency=, timeout=); when given, overrides are applied with
      copy.replace(). Invalid values raise ConfigError here, before any task runs.
    """
    __slots__ = ("config",)

    def __init__(self, config=Unset, /, **overrides):
        if config is Unset:
            config = ExecutorConfig(**overrides)
        elif not isinstance(config, ExecutorConfig):
            raise TypeError("Executor() argument must be an ExecutorConfig")
        elif overrides:
            config = copy.replace(config, **overrides)
        self.config = config

    def run(self, tasks, /, *, cancellation=None, callback=None):
        """
        run every task and return the complete ResultSet.

        parameters
        - tasks: mapping of key (str | int) to a zero-argument callable.
        - cancellation: optional Cancellation token shared with the caller.
        - callback: optional callable(key, outcome), invoked from the worker thread
          as each task completes. Its errors go to the fault sink.

        returns
        - ResultSet with exactly one outcome per key of `tasks`, in input order.

        raises
        - TypeError for a malformed `tasks`, `cancellation` or `callback`.
        """
        tasks = _validate(tasks)
        if cancellation is None:
            cancellation = Cancellation()
        elif not isinstance(cancellation, Cancellation):
            raise TypeError("run() cancellation must be a Cancellation")
        if callback is not None and not callable(callback):
            raise TypeError("run() callback must be callable")
        return _Invocation(self.config, tasks, cancellation, callback)()

    def __repr__(self):
        return f"Executor({self.config!r})"


def run(tasks, config=Unset, /, *, cancellation=None, callback=None):
    """shortcut for Executor(config).run(tasks, ...)."""
    return Executor(config).run(tasks, cancellation=cancellation, callback=callback)


def concurrently(tasks, /):
    """
    run all tasks at once and return their values by key.

    raises
    - TaskExit when any task failed; its exceptions are the captured task faults.
    """
    tasks = _validate(tasks)
    return Executor(ExecutorConfig(max(len(tasks), 1))).run(tasks).unwrap()


__all__ = (
    "Cancellation",
    "Executor",
    "run",
    "concurrently",
)
