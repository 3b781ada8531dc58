"""
Cmdweave type converter registry.

Overview
- Converters: per-instance registry mapping a requested value type to a parser
  callable (str -> value). There is no process-wide registry; every parse call
  works with the instance it is handed (a fresh default one when omitted).
- Built-in kinds: str, bool, Char, int, fixed-width integers (Int8..Int64,
  UInt8..UInt64), float, Decimal, datetime, Enum subclasses, and
  optional-of any of these (T | None, Optional[T]).
- register(type, parser) overrides or extends the kinds for one registry.

Failure modes
- Unsupported type: ConfigurationError, raised at declaration time. This is a
  bug in the program's own declarations.
- Unparseable text: parse() returns Unset. The declaration engine turns that
  into a user-facing UnparsableValueError.

Numbers
- float and Decimal accept finite values only: 'nan', 'inf' and 'Infinity'
  are rejected like any other unparseable text.

Booleans
- Case-insensitive 'true'/'false' and '1'/'0'.
- Flag-shaped types (bool, bool | None) are treated as present-means-true by
  the declaration engine without calling into the registry.
"""
import builtins
import datetime
import decimal
import enum
import math
import re
import types
import typing

from .faults import ConfigurationError
from .utils import *


class Char(str):
    """
    A string of exactly one character.
    """

    def __new__(cls, value="\0", /):
        if len(value := str(value)) != 1:
            raise ValueError("char must be exactly one character, got %d" % len(value))
        return super().__new__(cls, value)


def _integer(name, bits, signed):
    # Fixed-width integer: an int subclass that refuses out-of-range values.
    lower = -(1 << (bits - 1)) if signed else 0
    upper = (1 << (bits - 1)) - 1 if signed else (1 << bits) - 1

    @rename("__new__")
    def __new__(cls, value=0, /):
        self = int.__new__(cls, value)
        if not lower <= self <= upper:
            raise ValueError("%s value %d is out of range [%d, %d]" % (cls.__name__, self, lower, upper))
        return self

    return type(name, (int,), {
        "__new__": __new__,
        "__module__": __name__,
        "__doc__": "%s-bit %s integer in [%d, %d]." % (bits, "signed" if signed else "unsigned", lower, upper),
        "min": lower,
        "max": upper,
    })


Int8 = _integer("Int8", 8, True)
Int16 = _integer("Int16", 16, True)
Int32 = _integer("Int32", 32, True)
Int64 = _integer("Int64", 64, True)
UInt8 = _integer("UInt8", 8, False)
UInt16 = _integer("UInt16", 16, False)
UInt32 = _integer("UInt32", 32, False)
UInt64 = _integer("UInt64", 64, False)


def _parse_bool(text):
    match text.strip().lower():
        case "true" | "1":
            return True
        case "false" | "0":
            return False
        case _:
            raise ValueError("not a boolean: %r" % text)


def _parse_integral(text):
    # int() alone would also take '1_000'; only plain decimal digits are accepted.
    if not re.fullmatch(r"\s*[+-]?[0-9]+\s*", text):
        raise ValueError("not an integer: %r" % text)
    return int(text)


def _parse_decimal(text):
    try:
        value = decimal.Decimal(text.strip())
    except decimal.InvalidOperation:
        raise ValueError("not a decimal: %r" % text) from None
    if not value.is_finite():
        raise ValueError("not a finite decimal: %r" % text)
    return value


def _parse_float(text):
    if not math.isfinite(value := float(text)):
        raise ValueError("not a finite float: %r" % text)
    return value


def _parse_datetime(text):
    value = datetime.datetime.fromisoformat(text.strip())
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc)
    return value


def _fixed(cls):
    @rename("parse_" + cls.__name__.lower())
    def parser(text):
        return cls(_parse_integral(text))
    return parser


_builtins = {
    str: str,
    bool: _parse_bool,
    Char: Char,
    int: _parse_integral,
    float: _parse_float,
    decimal.Decimal: _parse_decimal,
    datetime.datetime: _parse_datetime,
} | {
    cls: _fixed(cls) for cls in (Int8, Int16, Int32, Int64, UInt8, UInt16, UInt32, UInt64)
}


def _unwrap(type, /):
    """
    Split an optional-of type into (inner, optional).

    Unions other than a single type with None are reported as (type, False)
    and later rejected by resolve().
    """
    if typing.get_origin(type) in (types.UnionType, typing.Union):
        members = typing.get_args(type)
        inner = tuple(member for member in members if member is not types.NoneType)
        if len(inner) == 1 and len(members) == 2:
            return inner[0], True
    return type, False


def _enumeration(cls, /):
    members = {name.lower(): member for name, member in cls.__members__.items()}

    @rename("parse_" + cls.__name__.lower())
    def parser(text):
        try:
            return members[text.strip().lower()]
        except KeyError:
            raise ValueError("not a %s member: %r" % (cls.__name__, text)) from None
    return parser


class Converters:
    """
    Registry of value parsers, keyed by the requested type.

    Lookup order for a requested type T
    1. a parser registered on this instance for T itself;
    2. when T is optional-of U: a parser registered on this instance for U;
    3. the built-in parser for U (Enum subclasses included).
    Anything else is a ConfigurationError.

    Example
        >>> converters = Converters()
        >>> @converters.register(pathlib.Path)
        ... def parse_path(text):
        ...     return pathlib.Path(text).expanduser()
    """

    def __init__(self, parsers=Unset, /):
        self._parsers = {}
        for type, parser in dict(coalesce(parsers, {})).items():
            self.register(type, parser)

    def __repr__(self):
        return f"converters({', '.join(map(typename, self._parsers))})"

    def __contains__(self, type):
        try:
            self.resolve(type)
        except ConfigurationError:
            return False
        return True

    def register(self, type, parser=Unset, /):
        """
        Register parser for type on this registry; a decorator when parser is omitted.

        The parser receives the raw text and returns the value, raising
        ValueError (or TypeError/ArithmeticError) when the text is not valid.
        """
        if parser is Unset:
            @rename("register")
            def wrapper(parser, /):
                self.register(type, parser)
                return parser
            return wrapper

        try:
            hash(type)
        except TypeError:
            raise TypeError("register() first argument must be a hashable type") from None
        if not callable(parser):
            raise TypeError("register() second argument must be callable")
        self._parsers[type] = parser
        return parser

    def resolve(self, type, /):
        """
        Return the parser used for type, or raise ConfigurationError.
        """
        try:
            return self._parsers[type]
        except (KeyError, TypeError):
            pass

        inner, optional = _unwrap(type)
        if optional:
            try:
                return self._parsers[inner]
            except (KeyError, TypeError):
                pass

        try:
            return _builtins[inner]
        except (KeyError, TypeError):
            pass

        if isinstance(inner, builtins.type) and issubclass(inner, enum.Enum):
            return _enumeration(inner)

        raise ConfigurationError("unsupported value type %s" % typename(type))

    def parse(self, type, text, /):
        """
        Convert text into a value of type, returning Unset when text is not valid.
        """
        parser = self.resolve(type)
        try:
            return parser(text)
        except (ValueError, TypeError, ArithmeticError):
            return Unset

    @staticmethod
    def flag(type, /):
        """
        Tell whether type is flag-shaped (bool or optional bool).
        """
        return _unwrap(type)[0] is bool


def typename(type, /):
    """
    Human-friendly name of a requested value type ('int', 'Int8 | None', ...).
    """
    inner, optional = _unwrap(type)
    name = getattr(inner, "__name__", None) or repr(inner)
    return name + " | None" if optional else name


__all__ = (
    "Converters",
    "Char",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "typename",
)
