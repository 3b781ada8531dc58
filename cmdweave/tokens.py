"""
Cmdweave token store and option index.

Overview
- Token: one argv entry with its origin index and a consumed flag. The flag is
  set at most once and never cleared; a consumed token is invisible to every
  later lookup.
- OptionOccurrence: (name, index, length) for every option-like token, i.e. a
  token starting with '-' and longer than one character. 'length' is the
  position of the inline '=' separator, or the full length when there is none;
  'name' is the text up to that position and acts as the sort key.
- TokenStore: the tokens plus the occurrences sorted once by (name, index).

Lookups
- occurrences(alias, name) is a pair of binary-search ranges over the sorted
  keys. The alias range is a prefix range ('-x' matches '-x', '-x=V' and the
  adjacent form '-xV'); the long-name range is an exact-key range ('--name'
  matches '--name' and '--name=V').
- The two ranges are merged by token index, so a caller always sees the
  left-to-right order of the command line whichever spelling was used.
- Consumption is re-checked lazily while iterating: a token consumed as the
  value of an earlier occurrence is never yielded.
"""
import bisect
import heapq
from collections import namedtuple
from collections.abc import Iterable

from .utils import *


OptionOccurrence = namedtuple("OptionOccurrence", ("name", "index", "length"))
OptionOccurrence.__doc__ = """
Immutable record of one option-like token (name portion, token index, name length).
"""


class Token:
    """
    One argv entry.

    Properties
    - text: the raw argument, unchanged.
    - index: the 0-based origin position in the argument vector.
    - option: True when the text looks like an option ('-x', '--name', '-9').
    - consumed: True once a declaration has bound this token.
    """

    text = mirror("text")
    index = mirror("index")
    consumed = mirror("consumed")

    def __init__(self, text, index, /):
        if not isinstance(text, str):
            raise TypeError("token text must be a string")
        self._text = text
        self._index = index
        self._consumed = False

    @property
    def option(self):
        return len(self._text) > 1 and self._text.startswith("-")

    def __repr__(self):
        return f"token(text={self._text!r}, index={self._index!r}, consumed={self._consumed!r})"

    def __rich_repr__(self):
        yield "text", self._text
        yield "index", self._index
        yield "consumed", self._consumed


class TokenStore:
    """
    Tokenized argument vector with consumption tracking and an option index.

    Instances are created per parse call by tokenize() and are never shared.
    """

    def __init__(self, arguments, /):
        self._tokens = tuple(Token(text, index) for index, text in enumerate(arguments))
        occurrences = []
        for token in self._tokens:
            if not token.option:
                continue
            length = token.text.find("=")
            if length < 0:
                length = len(token.text)
            occurrences.append(OptionOccurrence(token.text[:length], token.index, length))
        occurrences.sort()
        self._occurrences = tuple(occurrences)
        self._keys = tuple(occurrence.name for occurrence in occurrences)

    def __len__(self):
        return len(self._tokens)

    def __iter__(self):
        return iter(self._tokens)

    def __getitem__(self, index):
        return self._tokens[index]

    def __repr__(self):
        return f"token-store({', '.join(repr(token.text) for token in self._tokens)})"

    def next_unconsumed(self, start=0, stop=None):
        """
        Return the lowest index in [start, stop) whose token is unconsumed, or None.
        """
        for index in range(start, len(self._tokens) if stop is None else min(stop, len(self._tokens))):
            if not self._tokens[index].consumed:
                return index
        return None

    def consume(self, index):
        """
        Mark the token at index as consumed. Consuming twice is a no-op.
        """
        self._tokens[index]._consumed = True

    def consumed(self, index):
        return self._tokens[index].consumed

    def _alias_range(self, alias, start, stop):
        # Every key beginning with the alias, i.e. '-x', '-x=V' and '-xV'.
        lower = bisect.bisect_left(self._keys, alias)
        upper = lower
        while upper < len(self._keys) and self._keys[upper].startswith(alias):
            upper += 1
        return sorted(
            (occurrence.index, 2)
            for occurrence in self._occurrences[lower:upper]
            if start <= occurrence.index < stop
        )

    def _name_range(self, name, start, stop):
        lower = bisect.bisect_left(self._keys, name)
        upper = bisect.bisect_right(self._keys, name, lower)
        # Equal keys are already ordered by index.
        return [
            (occurrence.index, occurrence.length)
            for occurrence in self._occurrences[lower:upper]
            if start <= occurrence.index < stop
        ]

    def occurrences(self, alias=Unset, name=Unset, start=0, stop=None):
        """
        Yield (index, length) for every unconsumed occurrence of an option.

        Parameters
        - alias: Unset | str, the short spelling ('-x').
        - name: Unset | str, the long spelling ('--name').
        - start/stop: the index window to search, stop defaulting to the end.

        Yields
        - (index, length) in ascending index order; text[length:] is the
          inline part of the token ('', '=VALUE' or, for aliases, 'VALUE').
        """
        stop = len(self._tokens) if stop is None else stop
        ranges = []
        if alias is not Unset:
            ranges.append(self._alias_range(alias, start, stop))
        if name is not Unset:
            ranges.append(self._name_range(name, start, stop))
        for index, length in heapq.merge(*ranges):
            if not self._tokens[index].consumed:
                yield index, length


def tokenize(arguments, /):
    """
    Build a TokenStore from an iterable of argument strings.

    Each argv entry is already one token; no shell-style splitting is done.
    """
    if isinstance(arguments, str) or not isinstance(arguments, Iterable):
        raise TypeError("tokenize() argument must be an iterable of strings")
    arguments = list(arguments)
    for argument in arguments:
        if not isinstance(argument, str):
            raise TypeError("tokenize() argument must be an iterable of strings")
    return TokenStore(arguments)


__all__ = (
    "Token",
    "TokenStore",
    "OptionOccurrence",
    "tokenize",
)
