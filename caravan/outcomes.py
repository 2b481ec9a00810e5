"""
Task outcomes and the ResultSet returned by Executor.run().

- Success(value): the task body returned `value`.
- Failure(fault): the task body raised, timed out or was cancelled; `fault` is a
  TaskFault (TaskFailure, TimeoutFailure or CancelledFailure) and `description`
  is its message ("timeout", "cancelled" or the error text).
- ResultSet: read-only mapping of task key to outcome, one entry per submitted task.

Both outcome types support structural pattern matching:

    match results["fetch"]:
        case Success(value):
            ...
        case Failure("timeout"):
            ...
        case Failure(description):
            ...
"""
from collections.abc import Mapping
from types import MappingProxyType
from typing import final

from rich.text import Text

from .faults import TaskExit, TaskFailure, TaskFault


@final
class Success:
    __slots__ = ("value",)
    __match_args__ = ("value",)

    ok = True

    def __init__(self, value, /):
        self.value = value

    def __eq__(self, other):
        if not isinstance(other, Success):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash((Success, self.value))

    def __repr__(self):
        return f"Success({self.value!r})"

    def __rich__(self):
        return Text.assemble(("Success", "green"), "(", repr(self.value), ")")

    def __init_subclass__(cls, **options):
        raise TypeError("type 'Success' is not an acceptable base type")


@final
class Failure:
    """
    a task that did not produce a value.

    Failure("x") is shorthand for Failure(TaskFailure("x")). Equality compares the
    description only, so Failure("timeout") equals the outcome of a timed-out task.
    """
    __slots__ = ("fault",)
    __match_args__ = ("description",)

    ok = False

    def __init__(self, fault, /):
        if isinstance(fault, str):
            fault = TaskFailure(fault)
        elif not isinstance(fault, TaskFault):
            raise TypeError("Failure() argument must be a string or a task fault")
        self.fault = fault

    @property
    def description(self):
        return self.fault.message

    @property
    def kind(self):
        return type(self.fault)

    @property
    def error(self):
        """the exception raised by the task body, if any."""
        return self.fault.__cause__

    def __eq__(self, other):
        if not isinstance(other, Failure):
            return NotImplemented
        return self.description == other.description

    def __hash__(self):
        return hash((Failure, self.description))

    def __repr__(self):
        return f"Failure({self.description!r})"

    def __rich__(self):
        return Text.assemble(("Failure", "red"), "(", repr(self.description), ")")

    def __init_subclass__(cls, **options):
        raise TypeError("type 'Failure' is not an acceptable base type")


class ResultSet(Mapping):
    """
    complete, read-only mapping of task keys to outcomes.

    views
    - ok: True when every outcome is a Success (also True when empty).
    - successes / failures: read-only sub-mappings by outcome kind.
    - unwrap(): plain values by key, or TaskExit when any task failed.
    """
    __slots__ = ("_outcomes",)

    def __init__(self, outcomes=(), /):
        outcomes = dict(outcomes)
        for key, outcome in outcomes.items():
            if not isinstance(outcome, Success | Failure):
                raise TypeError(f"ResultSet() value for {key!r} must be a Success or a Failure")
        self._outcomes = outcomes

    def __getitem__(self, key, /):
        return self._outcomes[key]

    def __iter__(self):
        return iter(self._outcomes)

    def __len__(self):
        return len(self._outcomes)

    @property
    def ok(self):
        return all(outcome.ok for outcome in self._outcomes.values())

    @property
    def successes(self):
        return MappingProxyType({key: outcome for key, outcome in self._outcomes.items() if outcome.ok})

    @property
    def failures(self):
        return MappingProxyType({key: outcome for key, outcome in self._outcomes.items() if not outcome.ok})

    def unwrap(self):
        if failures := self.failures:
            raise TaskExit([outcome.fault for outcome in failures.values()])
        return {key: outcome.value for key, outcome in self._outcomes.items()}

    def __repr__(self):
        return f"ResultSet({self._outcomes!r})"


__all__ = (
    "Success",
    "Failure",
    "ResultSet",
)
