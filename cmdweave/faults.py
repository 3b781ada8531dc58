"""
Cmdweave faults (errors and warnings) and rendering.

Scope
- FaultCode: stable numeric identifiers for every user-facing issue.
- UserInputError / CommandWarning: base types carrying a message plus options
  (code, title, hint, input, index, ...) and able to render themselves.
- ConfigurationError: programmer errors in the declarations themselves
  (unsupported value type, misplaced argument list). Never user-facing.
- trigger(): central entry point to surface a fault with runtime options
  (shell/fancy/colorful/prog/console).

UX goals
- Position-first messages: the ordinal position of the offending token leads
  the message whenever there is one (“at third position”).
- Short titles, one-sentence bodies, a single clear hint.
- Lowercased tone with styling overridable via __styles__ in __main__.

Integration
- The parser records the first UserInputError of a level on its parse state
  and keeps going as a no-op; nothing is raised while parsing.
- run() surfaces the recorded fault with trigger(fault, shell=..., ...). In
  non-shell mode the fault is raised; in shell mode it is rendered via rich.
"""
import copy
import inspect
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - tokens (1110x): UNKNOWN_TOKEN
    - options (1111x): MISSING_OPTION, OPTION_VALUE_EXPECTED, UNPARSABLE_VALUE
    - arguments (1112x): MISSING_ARGUMENT
    - checks (1113x): FAILED_CHECK
    - warnings (121xx): EMPTY_INLINE_VALUE
    """
    # --- token errors ---
    UNKNOWN_TOKEN               = 11101

    # --- option errors ---
    MISSING_OPTION              = 11111
    OPTION_VALUE_EXPECTED       = 11112
    UNPARSABLE_VALUE            = 11113

    # --- argument errors ---
    MISSING_ARGUMENT            = 11121

    # --- check errors ---
    FAILED_CHECK                = 11131

    # --- warnings ---
    EMPTY_INLINE_VALUE          = 12111

    def normalize(self):
        """
        label shown for this code: the value, unless __main__.__codes__ maps it.
        """
        return str(_host("__codes__", {}).get(self, self.value))


def _host(name, default, /):
    # Host overrides (__codes__, __styles__, __prog__) live in __main__.
    return getattr(__import__("__main__"), name, default)


def _palette(defaults, colorful, /):
    """
    Build (styler, text) helpers over defaults merged with __main__.__styles__.

    With colorful False both helpers drop every style.
    """
    styles = defaultdict(str, defaults | _host("__styles__", {}))

    def styler(key):
        return styles[key] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if isinstance(fragment, Text):
            return fragment if colorful else Text(fragment.plain)
        return Text(str(fragment), style if colorful else "")

    return styler, text


class _Fault:
    """
    Message plus read-only options, shared by errors and warnings.

    Subclasses set __kind__ ('error'/'warning') and __palette__, and decide
    in __trigger__ how the fault surfaces.
    """
    __kind__ = "fault"
    __palette__ = {}

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **(dict(self.options) | overrides))

    def __rich__(self):
        styler, text = _palette(self.__palette__, self.options.get("colorful", True))
        kind = self.__kind__

        header = Text.assemble(
            "[ ",
            text(_host("__prog__", self.options.get("prog", "")), styler("prog-name")),
            " — ",
            text(self.options["code"].normalize(), styler("code")),
            " | ",
            text(self.options["title"].title(), styler(kind + "-title")),
            " ]",
        )
        body = Group(
            text(self.message, styler(kind + "-message")),
            Text.assemble(text(" → ", styler("hint-arrow")), text(self.options["hint"], styler("hint"))),
        )
        if not self.options.get("fancy", False):
            return Group(header, body)

        width = None
        if "ratio" in self.options:
            width = int((self.options.get("console", console).width - 4) * self.options["ratio"])
        return Panel(body, title=header, title_align="left", width=width)

    def _print(self):
        self.options.get("console", console).print(self)


class UserInputError(_Fault, Exception):
    """
    base of every recoverable, user-facing parse error.

    options (always present once built by the parser)
    - code: FaultCode
    - title: short lowercase title
    - hint: one actionable sentence
    runtime options (merged by trigger())
    - prog, shell, fancy, colorful, console, ratio
    """
    __kind__ = "error"
    __palette__ = {
        "prog-name": "bold #E6E6F0",
        "code": "bold #00E5FF",
        "error-title": "bold #FF4DA6",
        "error-message": "#C8C8D0",
        "hint-arrow": "#9CE19C dim",
        "hint": "italic #9CE19C",
    }

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        self._print()


class UnknownTokenError(UserInputError): ...
class MissingOptionError(UserInputError): ...
class MissingArgumentError(UserInputError): ...
class OptionValueExpectedError(UserInputError): ...
class UnparsableValueError(UserInputError): ...
class FailedCheckError(UserInputError): ...


class ConfigurationError(TypeError):
    """
    the program's own declarations are invalid (a bug, not a user mistake).
    """


class CommandWarning(_Fault, Warning):
    """
    base of the non-fatal issues collected while parsing.

    Outside shell mode they go through warnings.warn(), so the host's warning
    filters apply.
    """
    __kind__ = "warning"
    __palette__ = {
        "prog-name": "bold #E6E6F0",
        "code": "bold #FFB400",
        "warning-title": "bold #FFC2E0",
        "warning-message": "#D6D6DE",
        "hint-arrow": "#B8EFAF dim",
        "hint": "italic #B8EFAF",
    }

    def __trigger__(self):
        if not self.options.get("shell", False):
            warnings.warn(self, stacklevel=len(inspect.stack()))
            return
        self._print()


class EmptyInlineValueWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    - options are merged into a copy of the fault through copy.replace();
    - in shell mode the copy is printed, otherwise errors are raised and
      warnings go through warnings.warn().
    """
    if not callable(getattr(fault, "__trigger__", None)) or not callable(getattr(fault, "__replace__", None)):
        raise TypeError("trigger() argument must be a fault (with __trigger__ and __replace__)")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "UserInputError",
    "UnknownTokenError",
    "MissingOptionError",
    "MissingArgumentError",
    "OptionValueExpectedError",
    "UnparsableValueError",
    "FailedCheckError",
    "ConfigurationError",
    "CommandWarning",
    "EmptyInlineValueWarning",
    "FaultCode",
    "trigger",
)
