"""
Small internal helpers shared by the caravan modules.

Contents
- Unset / UnsetType: sentinel for "not provided" when None is a meaningful value
  (e.g. ExecutorConfig(timeout=None) means "no timeout", not "use a default").
- coalesce(): materialize a default only when a value is Unset.
- rename(): give generated callables and thread targets a readable name.
- seconds(): normalize a duration (int, float or timedelta) to float seconds.
"""
import builtins
import functools
from datetime import timedelta
from numbers import Real
from typing import final


@final
class UnsetType:
    """
    Internal singleton sentinel representing an "unset" value.

    Behavior
    - falsy: bool(Unset) is False.
    - identity: one instance per process (cached __new__).
    - final: subclassing raises TypeError.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Return `default` when `object` is Unset, otherwise `object` unchanged.

    None and other falsy values are preserved; only the sentinel is replaced.
    """
    return default if object is Unset else object


def rename(*parameters):
    """
    Set __name__/__qualname__ on a callable, or return a decorator that does.

    Forms
    - rename(callable, name) -> callable (renamed in place)
    - rename(name)           -> decorator

    Raises
    - TypeError on a non-callable target, a non-string name or a wrong arity.
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def seconds(duration, /):
    """
    Normalize a duration to float seconds.

    Accepts
    - int / float (bool excluded): taken as seconds.
    - datetime.timedelta: converted with total_seconds().

    Raises
    - TypeError for any other type. Sign is not checked here.
    """
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, Real) and not isinstance(duration, bool):
        return float(duration)
    raise TypeError("seconds() argument must be a number or a timedelta")


__all__ = (
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "seconds",
)
