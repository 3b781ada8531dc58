"""
Cmdweave utilities.

Small helpers shared by the token store, the declaration engine and the
command state machine.

Contents
- Unset: the "not provided" sentinel (falsey, a singleton, distinct from None)
  and its type, UnsetType. `str | Unset` builds a union usable with isinstance.
- coalesce(value, default): Unset becomes default, anything else is kept.
- rename(name): decorator giving generated callables a stable name.
- mirror(attr): read-only property over "_attr"; lists, dicts and sets are
  copied on every read.
- ordinal(number): position labels for fault messages ("third", "12th").

    >>> coalesce(Unset, "fallback"), coalesce(0, "fallback")
    ('fallback', 0)
    >>> ordinal(3), ordinal(12), ordinal(23)
    ('third', '12th', '23rd')
"""
import functools
from collections.abc import Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel. UnsetType() always returns the same object.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")

    def __union(self, other, /):
        try:
            return other | UnsetType
        except TypeError:
            return NotImplemented

    __or__ = __ror__ = __union

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self


def coalesce(object, default=None, /):
    """
    Return default when object is Unset, else object (None, 0 and "" included).
    """
    return default if object is Unset else object


def rename(name, /):
    """
    Decorator setting __name__ and __qualname__ of a generated callable.
    """
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(callable, /):
        callable.__name__ = callable.__qualname__ = name
        return callable

    decorator.__name__ = decorator.__qualname__ = "rename"
    return decorator


def _detach(object):
    # Tuples, strings and frozensets are immutable already and keep their type.
    match object:
        case list():
            return [_detach(item) for item in object]
        case Mapping():
            return {key: _detach(value) for key, value in object.items()}
        case Set() if not isinstance(object, frozenset):
            return {_detach(item) for item in object}
        case _:
            return object


def mirror(name, /):
    """
    Read-only property exposing the private field "_{name}".

    The token store, declarations and visitors use it so their state cannot be
    altered through the public surface.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")
    field = "_" + name

    @rename(name)
    def getter(self):
        return _detach(getattr(self, field))

    return property(getter, doc="read-only view of %s" % field)


_ORDINALS = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")


@functools.cache
def ordinal(number, /):
    """
    Label a 1-based position: words up to ten, then 11th, 21st, 22nd, 113th...
    """
    if not isinstance(number, int) or isinstance(number, bool):
        raise TypeError("ordinal() argument must be an integer")
    if number < 1:
        raise ValueError("ordinal() argument must be a positive integer")
    if number <= len(_ORDINALS):
        return _ORDINALS[number - 1]
    if number % 100 in (11, 12, 13):
        return "%dth" % number
    return "%d%s" % (number, {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th"))


Unset = UnsetType()


__all__ = (
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
    "UnsetType",
    "Unset",
)
