"""
Caravan faults (errors and warnings), rendering and the process-wide fault sink.

Scope
- FaultCode: stable numeric identifiers for every fault the executor can produce.
  Codes are grouped by domain so logs and searches stay predictable.
- ExecutorException / ExecutorWarning: base types carrying a message plus read-only
  options (key, hint, code, title, shell, fancy, colorful) and knowing how to render
  themselves through rich.
- TaskFault and its kinds (TaskFailure, TimeoutFailure, CancelledFailure): captured
  per task and stored in a ResultSet, never raised by run().
- TaskExit: an ExceptionGroup bundling task faults for callers that want plain values.
- trigger(): raise/warn a fault, or render it when shell=True.
- report() / errorsink(): the process-wide sink for faults nobody else can be told
  about (deferred callbacks, progress hooks, abandoned tasks).

Host customization (read from __main__, all optional)
- __styles__: dict of style names to rich styles, merged over the defaults.
- __codes__: dict of FaultCode to labels, used by FaultCode.normalize().
- __prog__: program name shown in rendered headers (defaults to "caravan").
"""
import copy
import sys
import threading
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across caravan (stable identifiers).

    grouping
    - configuration (211xx): INVALID_CONCURRENCY, INVALID_TIMEOUT
    - task outcomes (212xx): TASK_FAILURE, TASK_TIMEOUT, TASK_CANCELLED
    - background work (213xx): DEFERRED_FAILURE, CALLBACK_FAILURE
    - warnings (22xxx): TASK_ABANDONED
    """
    # --- configuration errors (211xx) ---
    INVALID_CONCURRENCY = 21101
    INVALID_TIMEOUT     = 21102

    # --- task outcomes (212xx) ---
    TASK_FAILURE        = 21201
    TASK_TIMEOUT        = 21202
    TASK_CANCELLED      = 21203

    # --- background work (213xx) ---
    DEFERRED_FAILURE    = 21301
    CALLBACK_FAILURE    = 21302

    # --- warnings (22xxx) ---
    TASK_ABANDONED      = 22201

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        relabel codes; otherwise the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, kind):
    """
    build the rich renderable shared by exceptions and warnings.

    layout
    - header: "[ <prog> - <code> | <Title> ]"
    - message line, then an optional "→ hint" line
    - fancy=True wraps message and hint in a Panel titled with the header
    """
    main = __import__("__main__")
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = fault.options.get("colorful", True)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style] if colorful else "")

    header = Text.assemble(
        "[ ",
        text(getattr(main, "__prog__", "caravan"), "prog-name"),
        " - ",
        text(fault.code.normalize(), "code"),
        " | ",
        text(fault.title.title(), f"{kind}-title"),
        " ]"
    )
    body = [text(fault.message, f"{kind}-message")]
    if fault.hint:
        body.append(Text.assemble(text(" → ", "hint-arrow"), text(fault.hint, "hint")))

    if fault.options.get("fancy"):
        return Panel(Group(*body), title=header, title_align="left")
    return Group(header, *body)


class ExecutorException(Exception):
    """
    base type for every caravan error.

    attributes
    - message: str, the one-sentence description (also str(self)).
    - options: read-only mapping of context (key, hint, code, title and render flags).
    - code / title / hint: resolved from options, falling back to the class __fault__.
    """
    __fault__ = (FaultCode.TASK_FAILURE, "executor error")

    def __init__(self, message=Unset, /, **options):
        message = coalesce(message, "")
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__}() argument must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code", self.__fault__[0])

    @property
    def title(self):
        return self.options.get("title", self.__fault__[1])

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        }, "error")

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self from None
        console.print(self)
        if self.options.get("deferred"):
            return
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced

    def __reduce__(self):
        return _rebuild, (type(self), self.message, dict(self.options))


def _rebuild(cls, message, options):
    return cls(message, **options)


class ConfigError(ExecutorException):
    """raised before any task starts when an ExecutorConfig value is invalid."""
    __fault__ = (FaultCode.INVALID_CONCURRENCY, "invalid configuration")


class TaskFault(ExecutorException):
    """
    base for faults captured per task and stored as Failure outcomes.

    the task key travels in options["key"]; two faults are equal when they share a
    kind and a message, whichever task produced them.
    """
    __fault__ = (FaultCode.TASK_FAILURE, "task fault")

    @property
    def key(self):
        return self.options.get("key")

    def __eq__(self, other):
        if not isinstance(other, TaskFault):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    def __hash__(self):
        return hash((type(self), self.message))


class TaskFailure(TaskFault):
    """the task body raised; the original error is the __cause__."""
    __fault__ = (FaultCode.TASK_FAILURE, "task failed")


class TimeoutFailure(TaskFault):
    __fault__ = (FaultCode.TASK_TIMEOUT, "task timed out")

    def __init__(self, message="timeout", /, **options):
        super().__init__(message, **options)


class CancelledFailure(TaskFault):
    __fault__ = (FaultCode.TASK_CANCELLED, "task cancelled")

    def __init__(self, message="cancelled", /, **options):
        super().__init__(message, **options)


class DeferredCallbackError(ExecutorException):
    __fault__ = (FaultCode.DEFERRED_FAILURE, "deferred callback failed")


class CallbackError(ExecutorException):
    """a progress callback raised while reporting a completed task."""
    __fault__ = (FaultCode.CALLBACK_FAILURE, "progress callback failed")


class ExecutorWarning(Warning):
    __fault__ = (FaultCode.TASK_ABANDONED, "executor warning")

    def __init__(self, message=Unset, /, **options):
        message = coalesce(message, "")
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__}() argument must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    code = ExecutorException.code
    title = ExecutorException.title
    hint = ExecutorException.hint

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "warning-message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        }, "warning")

    def __trigger__(self):
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=3)
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class TaskAbandonedWarning(ExecutorWarning):
    """a timed-out task body was left running in its daemon thread."""
    __fault__ = (FaultCode.TASK_ABANDONED, "task abandoned")


class TaskExit(ExceptionGroup[TaskFault]):
    """
    bundle of task faults for callers that want plain values or an error.

    raised only by ResultSet.unwrap() and concurrently(); run() never raises it.
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "task failures", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("task failures", self.exceptions)
        self.options = MappingProxyType(options)

    def derive(self, exceptions):
        return type(self)(exceptions, **self.options)

    @property
    def keys(self):
        return tuple(exception.key for exception in self.exceptions)

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", True)
        prog = getattr(main, "__prog__", "caravan")
        header = Text.assemble(
            "[ ",
            Text(prog, "bold #E6E6F0" if colorful else ""),
            " - ",
            Text(self.message.title(), "bold #FF4DA6" if colorful else ""),
            " ]"
        )
        renders = [copy.replace(exception, colorful=colorful) for exception in self.exceptions]
        if self.options.get("fancy"):
            return Panel(Group(*renders), title=header, title_align="left")
        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell"):
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - outside shell mode exceptions are raised and warnings go to warnings.warn;
      in shell mode both are rendered on the stderr console.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


_sink = None
_sink_lock = threading.Lock()


def _deliver(fault):
    # default sink: warnings keep warning semantics, errors can only be printed
    if isinstance(fault, Warning):
        try:
            return fault.__trigger__()
        except Warning:
            pass  # escalated by a warnings filter; report() must not raise
    console.print(fault)


def report(fault, /, **options):
    """
    deliver a fault to the process-wide sink.

    used for errors raised where no caller can receive them: deferred callbacks,
    progress hooks and abandoned tasks. report() itself never raises on behalf of
    the fault; a handler that fails falls back to the default rendering.

    parameters
    - fault: ExecutorException or ExecutorWarning (positional-only).
    - **options: merged into the fault via copy.replace() before delivery.
    """
    if not isinstance(fault, ExecutorException | ExecutorWarning):
        raise TypeError("report() argument must be an executor fault")
    fault = copy.replace(fault, **options)
    with _sink_lock:
        handler = _sink
    if handler is None:
        return _deliver(fault)
    try:
        handler(fault)
    except Exception:
        _deliver(fault)


def errorsink(handler, /):
    """
    install the process-wide fault handler (usable as a decorator).

    parameters
    - handler: callable taking one fault, or None to restore the default sink.

    returns
    - the handler unchanged, so @errorsink can decorate a function.

    example
        @errorsink
        def collect(fault):
            faults.append(fault)
    """
    global _sink
    if handler is not None and not callable(handler):
        raise TypeError("errorsink() argument must be callable or None")
    with _sink_lock:
        _sink = handler
    return handler


__all__ = (
    "FaultCode",
    "ExecutorException",
    "ConfigError",
    "TaskFault",
    "TaskFailure",
    "TimeoutFailure",
    "CancelledFailure",
    "DeferredCallbackError",
    "CallbackError",
    "ExecutorWarning",
    "TaskAbandonedWarning",
    "TaskExit",
    "trigger",
    "report",
    "errorsink",
)
