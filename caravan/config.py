"""
Executor configuration.

ExecutorConfig is the explicit, per-call replacement for a process-wide concurrency
setting: it is built where run() is called and validated up front, so a bad value
fails with ConfigError before any task starts.

Host defaults
- when `concurrency` is omitted, `__main__.__concurrency__` is used if the host
  application defines it, otherwise DEFAULT_CONCURRENCY.
"""
import math
import threading

from .faults import ConfigError, FaultCode
from .utils import Unset, coalesce, seconds

DEFAULT_CONCURRENCY = 20


class ExecutorConfig:
    """
    immutable executor settings.

    parameters
    - concurrency: int >= 1, maximum number of task bodies running at once.
    - timeout: None, or a positive number of seconds / timedelta per task, no
      longer than threading.TIMEOUT_MAX.

    raises
    - ConfigError (INVALID_CONCURRENCY / INVALID_TIMEOUT) on invalid values.
    """
    __slots__ = ("_concurrency", "_timeout")

    def __init__(self, concurrency=Unset, timeout=None):
        concurrency = coalesce(concurrency, getattr(__import__("__main__"), "__concurrency__", DEFAULT_CONCURRENCY))

        if isinstance(concurrency, bool) or not isinstance(concurrency, int):
            raise ConfigError(
                f"concurrency must be an integer, got {type(concurrency).__name__}",
                code=FaultCode.INVALID_CONCURRENCY,
                hint="pass a whole number of workers, e.g. ExecutorConfig(4)"
            )
        if concurrency < 1:
            raise ConfigError(
                f"concurrency must be at least 1, got {concurrency}",
                code=FaultCode.INVALID_CONCURRENCY,
                hint="use 1 to run tasks one after another"
            )

        if timeout is not None:
            try:
                timeout = seconds(timeout)
            except TypeError:
                raise ConfigError(
                    f"timeout must be a number of seconds or a timedelta, got {type(timeout).__name__}",
                    code=FaultCode.INVALID_TIMEOUT,
                    hint="omit the timeout to let tasks run as long as they need"
                ) from None
            if not math.isfinite(timeout) or timeout <= 0:
                raise ConfigError(
                    f"timeout must be a positive finite duration, got {timeout}",
                    code=FaultCode.INVALID_TIMEOUT,
                    hint="omit the timeout to let tasks run as long as they need"
                )
            if timeout > threading.TIMEOUT_MAX:
                raise ConfigError(
                    f"timeout must not exceed {threading.TIMEOUT_MAX:g}s, got {timeout:g}",
                    code=FaultCode.INVALID_TIMEOUT,
                    hint="omit the timeout to let tasks run as long as they need"
                )

        object.__setattr__(self, "_concurrency", concurrency)
        object.__setattr__(self, "_timeout", timeout)

    @property
    def concurrency(self):
        return self._concurrency

    @property
    def timeout(self):
        return self._timeout

    def __setattr__(self, name, value, /):
        raise AttributeError(f"'{type(self).__name__}' object is read-only")

    def __delattr__(self, name, /):
        raise AttributeError(f"'{type(self).__name__}' object is read-only")

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(**{"concurrency": self._concurrency, "timeout": self._timeout, **overrides})

    def __reduce__(self):
        return type(self), (self._concurrency, self._timeout)

    def __eq__(self, other):
        if not isinstance(other, ExecutorConfig):
            return NotImplemented
        return (self._concurrency, self._timeout) == (other._concurrency, other._timeout)

    def __hash__(self):
        return hash((self._concurrency, self._timeout))

    def __repr__(self):
        return f"ExecutorConfig(concurrency={self._concurrency!r}, timeout={self._timeout!r})"


__all__ = (
    "DEFAULT_CONCURRENCY",
    "ExecutorConfig",
)
