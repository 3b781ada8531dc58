r"""
Cmdweave declaration engine.

Overview
- Declaration: read-only record of one requested option, option list,
  argument, argument list or command. Validated on construction.
- DeclarationVisitor: the surface a configuration callable receives
  (option/option_list/argument/argument_list/command/check/descr/handler).
  It builds and records a Declaration for every call, then dispatches to the
  active variant.
- Describer: side-effect-free variant. Records names, placeholders and help
  text, returns empty values, never evaluates predicates or default factories.
- Extractor: consuming variant. Matches declarations against a TokenStore
  within the level's scope, converts values, resolves defaults and records the
  first user-input fault on the level's ParseState.

Configuration callables are plain functions that take the visitor:

    >>> def configure(p):
    ...     verbose = p.option("-v", "--verbose", type=bool, descr="chatty output")
    ...     p.command("add", add)
    ...     p.handler(lambda: print(verbose))

The same callable runs once per variant, so it has to declare the same things
in the same order each time it is called.

Level scope
- Option lookups and the help probe see tokens from the level's lower bound
  (0 at the root, the command token's index + 1 in a child) up to the first
  unconsumed bare token equal to one of the level's command names. Root
  options therefore never match tokens that follow the subcommand verb.
- Arguments bind to the next unconsumed token from the lower bound, command
  names included: an argument declared before a command takes its token.

Value resolution (options)
- '--name=VALUE', '-xVALUE', '-x=VALUE': inline value.
- '--name VALUE': the immediately following token, which must exist and be
  unconsumed; otherwise OptionValueExpectedError.
- flag-shaped options (bool, non-list) without an inline value are True.
- scalar options: every occurrence is consumed, the last one is converted.
- option lists: every occurrence is converted in command-line order.
"""
import functools
import operator
import re
from abc import ABC, abstractmethod
from collections import namedtuple
from enum import Enum

from .converters import Converters, typename
from .faults import *
from .tokens import TokenStore
from .utils import *


class Kind(Enum):
    OPTION = "option"
    OPTION_LIST = "option-list"
    ARGUMENT = "argument"
    ARGUMENT_LIST = "argument-list"
    COMMAND = "command"

    @property
    def list(self):
        return self in (Kind.OPTION_LIST, Kind.ARGUMENT_LIST)

    @property
    def positional(self):
        return self in (Kind.ARGUMENT, Kind.ARGUMENT_LIST)

    @property
    def named(self):
        return self in (Kind.OPTION, Kind.OPTION_LIST)


class Phase(Enum):
    ACTIVE = "active"
    INTERRUPTED = "interrupted"
    FINISHED = "finished"


Child = namedtuple("Child", ("name", "configure", "index", "descr"))


class DeclarationType(type):
    """
    Metaclass giving declarations read-only fields and stable representations.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name in __introspectable__ becomes a mirror() property over "_{name}".
    - __repr__/__rich_repr__ list the fields in __displayable__ (or all of
      __introspectable__ when unset).
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_names(metadata, names, /):
    """
    Split declared names into 'alias' ('-x') and 'name' ('--name' or the command name).

    Raises
    - TypeError: options without names, arguments with names, non-string names.
    - ValueError: malformed, duplicated or reserved ('-h'/'--help') names.
    """
    kind = metadata["kind"]
    metadata["alias"] = None
    metadata["name"] = None

    if kind.positional:
        if names:
            raise TypeError(f"{kind.value} cannot have names")
        return

    if not names:
        raise TypeError(f"{kind.value} must specify at least one name")

    for name in names:
        if not isinstance(name, str):
            raise TypeError(f"{kind.value} names must be strings")
        elif not (name := name.strip()):
            raise ValueError(f"{kind.value} names cannot be empty-strings")

        if kind is Kind.COMMAND:
            if len(names) > 1:
                raise TypeError("command takes exactly one name")
            if not re.fullmatch(r"[^\W_](-?[^\W_]+)*", name):
                raise ValueError(f"command name {name!r} must be a plain word (for example: 'add' or 'dry-run')")
            metadata["name"] = name
            continue

        if name in ("-h", "--help"):
            raise ValueError(f"{kind.value} name {name!r} is reserved for help")
        if re.fullmatch(r"-[^\s=-]", name):
            if metadata["alias"] is not None:
                raise ValueError(f"{kind.value} can have only one short alias")
            metadata["alias"] = name
        elif re.fullmatch(r"--[^\W\d_](-?[^\W_]+)*", name):
            if metadata["name"] is not None:
                raise ValueError(f"{kind.value} can have only one long name")
            metadata["name"] = name
        else:
            raise ValueError(f"{kind.value} name {name!r} must look like '-x' or '--long-name'")


def _sanitize_metadata(metadata, /):
    """
    Validate default/factory/required wiring and the help-facing strings.
    """
    kind = metadata["kind"]

    if metadata["default"] is not Unset and metadata["factory"] is not Unset:
        raise TypeError(f"{kind.value} cannot have both 'default' and 'factory'")
    if metadata["factory"] is not Unset and not callable(metadata["factory"]):
        raise TypeError(f"{kind.value} 'factory' must be callable")
    if metadata["required"] and (metadata["default"] is not Unset or metadata["factory"] is not Unset):
        raise ValueError(f"required {kind.value} cannot have a default")
    if kind.list and isinstance(metadata["default"], str):
        raise TypeError(f"{kind.value} 'default' must be an iterable of values, not a string")

    for field in ("descr", "metavar"):
        if not isinstance(value := metadata[field], str | Unset):
            raise TypeError(f"{kind.value} {field!r} must be a string")
        elif isinstance(value, str) and not (value := value.strip()):
            raise ValueError(f"{kind.value} {field!r} cannot be empty")
        metadata[field] = coalesce(value)


class Declaration(metaclass=DeclarationType):
    """
    One requested option, option list, argument, argument list or command.

    Fields (read-only)
    - kind: Kind
    - alias: '-x' or None; name: '--name' (options), the command name, or None
    - type: requested value type (None for commands)
    - required, hidden: bool
    - default/factory: Unset unless configured
    - descr, metavar: str or None
    """

    __introspectable__ = (
        "kind",
        "alias",
        "name",
        "type",
        "required",
        "default",
        "factory",
        "hidden",
        "descr",
        "metavar",
    )
    __displayable__ = (
        "kind",
        "alias",
        "name",
        "type",
        "required",
        "metavar",
    )

    def __init__(
            self,
            kind,
            /,
            *names,
            type=str,
            required=False,
            default=Unset,
            factory=Unset,
            hidden=False,
            descr=Unset,
            metavar=Unset,
    ):
        if not isinstance(kind, Kind):
            raise TypeError("declaration kind must be a Kind")
        metadata = {
            "kind": kind,
            "type": type if kind is not Kind.COMMAND else None,
            "required": bool(required),
            "default": default,
            "factory": factory,
            "hidden": bool(hidden),
            "descr": descr,
            "metavar": metavar,
        }
        _sanitize_names(metadata, names)
        _sanitize_metadata(metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def label(self):
        """
        Name used in messages: '--name' preferred over '-x'; the metavar for arguments.
        """
        if self._kind.positional:
            return self._metavar
        return self._name or self._alias

    @property
    def empty(self):
        """
        Value of a declaration that was not (or could not be) resolved.
        """
        if self._kind.list:
            return ()
        if self._kind is Kind.OPTION and self._type is bool:
            return False
        return None

    def fallback(self):
        """
        Resolve the configured default (calling the factory), or the empty value.
        """
        if self._factory is not Unset:
            value = self._factory()
        elif self._default is not Unset:
            value = self._default
        else:
            return self.empty
        return tuple(value) if self._kind.list else value


class ParseState:
    """
    Mutable record of one command level.

    phase: ACTIVE -> INTERRUPTED (fault, help or matched child) -> FINISHED.
    Only the first fault is kept.
    """

    phase = mirror("phase")
    fault = mirror("fault")
    child = mirror("child")
    handler = mirror("handler")
    warnings = mirror("warnings")
    help_checked = mirror("help_checked")
    help_requested = mirror("help_requested")

    def __init__(self):
        self._phase = Phase.ACTIVE
        self._fault = None
        self._child = None
        self._handler = None
        self._warnings = []
        self._help_checked = False
        self._help_requested = False

    def __repr__(self):
        return f"parse-state(phase={self._phase.value!r}, fault={self._fault!r}, child={self._child!r})"

    @property
    def active(self):
        return self._phase is Phase.ACTIVE

    def _interrupt(self):
        if self._phase is Phase.ACTIVE:
            self._phase = Phase.INTERRUPTED

    def fail(self, fault, /):
        if not isinstance(fault, UserInputError):
            raise TypeError("fail() argument must be a user input error")
        if self._fault is None:
            self._fault = fault
        self._interrupt()

    def warn(self, warning, /):
        if not isinstance(warning, CommandWarning):
            raise TypeError("warn() argument must be a command warning")
        self._warnings.append(warning)

    def check_help(self, requested, /):
        self._help_checked = True
        if requested:
            self._help_requested = True
            self._interrupt()

    def descend(self, child, /):
        self._child = child
        self._interrupt()

    def bind(self, handler, /):
        self._handler = handler

    def finish(self):
        self._phase = Phase.FINISHED


class DeclarationVisitor(ABC):
    """
    Declaration surface shared by Describer and Extractor.

    Every public call validates its arguments, builds a Declaration, resolves
    the value type's converter and records the declaration before handing it
    to the variant. Programmer errors surface identically in both variants:
    - ConfigurationError: unsupported value type, argument after an argument list;
    - TypeError/ValueError: malformed names, duplicated names, bad metadata.
    """

    declarations = mirror("declarations")

    def __init__(self, converters=Unset, /, *, path=("program",)):
        if converters is Unset:
            converters = Converters()
        if not isinstance(converters, Converters):
            raise TypeError(f"{type(self).__name__.lower()} converters must be a Converters registry")
        self._converters = converters
        self._path = tuple(path)
        self._declarations = []
        self._names = set()
        self._arguments = 0
        self._greedy = False

    @property
    def converters(self):
        return self._converters

    @property
    def path(self):
        return self._path

    @property
    def prog(self):
        return " ".join(self._path)

    def _declare(self, kind, names, /, **metadata):
        if kind.positional:
            self._arguments += 1
            metadata["metavar"] = coalesce(metadata.get("metavar", Unset), "argument%d" % self._arguments)
        declaration = Declaration(kind, *names, **metadata)

        if kind is not Kind.COMMAND:
            self._converters.resolve(declaration.type)

        if kind.positional and self._greedy:
            raise ConfigurationError(
                "%s <%s> cannot follow an argument list" % (kind.value.replace("-", " "), declaration.metavar)
            )
        self._greedy |= kind is Kind.ARGUMENT_LIST

        for name in (declaration.alias, declaration.name):
            if name is None:
                continue
            if name in self._names:
                raise ValueError(f"{kind.value} name {name!r} is already declared at this level")
            self._names.add(name)

        self._declarations.append(declaration)
        return declaration

    def option(self, *names, type=str, default=Unset, factory=Unset, required=False, metavar=Unset, descr=Unset, hidden=False):
        """
        Declare a scalar option ('-x', '--name' or both) and return its value.
        """
        return self._option(self._declare(
            Kind.OPTION, names, type=type, default=default, factory=factory,
            required=required, metavar=metavar, descr=descr, hidden=hidden,
        ))

    def option_list(self, *names, type=str, default=Unset, factory=Unset, required=False, metavar=Unset, descr=Unset, hidden=False):
        """
        Declare a repeatable option and return a tuple of its values in command-line order.
        """
        return self._option_list(self._declare(
            Kind.OPTION_LIST, names, type=type, default=default, factory=factory,
            required=required, metavar=metavar, descr=descr, hidden=hidden,
        ))

    def argument(self, type=str, *, default=Unset, factory=Unset, required=False, metavar=Unset, descr=Unset, hidden=False):
        """
        Declare the next positional argument and return its value.
        """
        return self._argument(self._declare(
            Kind.ARGUMENT, (), type=type, default=default, factory=factory,
            required=required, metavar=metavar, descr=descr, hidden=hidden,
        ))

    def argument_list(self, type=str, *, default=Unset, factory=Unset, required=False, metavar=Unset, descr=Unset, hidden=False):
        """
        Declare the remaining positional arguments and return them as a tuple.
        """
        return self._argument_list(self._declare(
            Kind.ARGUMENT_LIST, (), type=type, default=default, factory=factory,
            required=required, metavar=metavar, descr=descr, hidden=hidden,
        ))

    def command(self, name, configure, /, *, descr=Unset, hidden=False):
        """
        Declare a subcommand whose declarations are made by configure(visitor).
        """
        if not callable(configure):
            raise TypeError("command() second argument must be callable")
        self._command(self._declare(Kind.COMMAND, (name,), descr=descr, hidden=hidden), configure)

    def check(self, predicate, message, /):
        """
        Fail the level with message unless predicate() is true.
        """
        if not callable(predicate):
            raise TypeError("check() first argument must be callable")
        if not isinstance(message, str) or not message.strip():
            raise TypeError("check() second argument must be a non-empty string")
        self._check(predicate, message.strip())

    def descr(self, text, /):
        """
        Set the description shown at the top of this level's help.
        """
        if not isinstance(text, str):
            raise TypeError("descr() argument must be a string")
        self._descr(text.strip())

    def handler(self, handler, /):
        """
        Register the callable run when this level resolves the command line.
        """
        if not callable(handler):
            raise TypeError("handler() argument must be callable")
        self._handler(handler)
        return handler

    @abstractmethod
    def _option(self, declaration): ...

    @abstractmethod
    def _option_list(self, declaration): ...

    @abstractmethod
    def _argument(self, declaration): ...

    @abstractmethod
    def _argument_list(self, declaration): ...

    @abstractmethod
    def _command(self, declaration, configure): ...

    @abstractmethod
    def _check(self, predicate, message): ...

    @abstractmethod
    def _descr(self, text): ...

    @abstractmethod
    def _handler(self, handler): ...


class Describer(DeclarationVisitor):
    """
    Metadata-only variant: what a level declares, for help and command routing.
    """

    description = mirror("description")

    def __init__(self, converters=Unset, /, *, path=("program",), descr=Unset):
        super().__init__(converters, path=path)
        self._description = coalesce(descr)

    def __repr__(self):
        return f"describer(path={self._path!r}, declarations={len(self._declarations)})"

    @property
    def commands(self):
        return tuple(x for x in self._declarations if x.kind is Kind.COMMAND)

    @property
    def options(self):
        return tuple(x for x in self._declarations if x.kind.named)

    @property
    def arguments(self):
        return tuple(x for x in self._declarations if x.kind.positional)

    @property
    def names(self):
        """
        Command names declared at this level.
        """
        return frozenset(x.name for x in self.commands)

    def _option(self, declaration):
        return declaration.empty

    def _option_list(self, declaration):
        return declaration.empty

    def _argument(self, declaration):
        return declaration.empty

    def _argument_list(self, declaration):
        return declaration.empty

    def _command(self, declaration, configure):
        pass

    def _check(self, predicate, message):
        pass

    def _descr(self, text):
        self._description = text or None

    def _handler(self, handler):
        pass


class Extractor(DeclarationVisitor):
    """
    Consuming variant bound to one TokenStore and one level's ParseState.

    Parameters
    - converters: the Converters registry in use.
    - store: the parse call's TokenStore.
    - state: this level's ParseState.
    - lower: first token index this level may look at.
    - commands: command names declared at this level (from its Describer).
    - path: command names from the root to this level (for hints).
    """

    def __init__(self, converters, store, state, /, *, lower=0, commands=frozenset(), path=("program",)):
        super().__init__(converters, path=path)
        if not isinstance(store, TokenStore):
            raise TypeError("extractor store must be a TokenStore")
        if not isinstance(state, ParseState):
            raise TypeError("extractor state must be a ParseState")
        self._store = store
        self._state = state
        self._lower = lower
        self._commands = frozenset(commands)

    def __repr__(self):
        return f"extractor(path={self._path!r}, lower={self._lower!r}, state={self._state!r})"

    @property
    def state(self):
        return self._state

    @property
    def store(self):
        return self._store

    def _scope(self):
        # Window for option lookups and the help probe; arguments ignore the upper bound.
        for index in range(self._lower, len(self._store)):
            token = self._store[index]
            if not token.consumed and not token.option and token.text in self._commands:
                return self._lower, index
        return self._lower, len(self._store)

    def _probe(self):
        # The reserved help option is looked up once per level.
        if self._state.help_checked:
            return self._state.help_requested
        requested = False
        for index, length in self._store.occurrences("-h", "--help", *self._scope()):
            if length == len(self._store[index].text):
                self._store.consume(index)
                requested = True
        self._state.check_help(requested)
        return requested

    def _ready(self):
        if not self._state.active:
            return False
        self._probe()
        return self._state.active

    def _hint(self):
        return "run '%s --help' to see the accepted options and arguments" % self.prog

    def _collect(self, declaration):
        """
        Consume every occurrence of an option; return [(input, index, raw)] or Unset on failure.

        raw is the value text, or Unset for a flag given without a value.
        """
        flag = declaration.kind is Kind.OPTION and self._converters.flag(declaration.type)
        found = []
        for index, length in self._store.occurrences(
                declaration.alias or Unset,
                declaration.name or Unset,
                *self._scope(),
        ):
            self._store.consume(index)
            text = self._store[index].text
            input, rest = text[:length], text[length:]
            if rest.startswith("="):
                if not (rest := rest[1:]):
                    self._state.warn(EmptyInlineValueWarning(
                        "empty inline value for option %r at %s position" % (input, ordinal(index + 1)),
                        title="empty inline value",
                        code=FaultCode.EMPTY_INLINE_VALUE,
                        input=input,
                        index=index,
                        hint="add a value after '=' (for example: %s=<value>) or remove '='" % input,
                    ))
                found.append((input, index, rest))
            elif rest:
                found.append((input, index, rest))
            elif flag:
                found.append((input, index, Unset))
            elif index + 1 < len(self._store) and not self._store.consumed(index + 1):
                self._store.consume(index + 1)
                found.append((input, index, self._store[index + 1].text))
            else:
                self._state.fail(OptionValueExpectedError(
                    "option %r at %s position expects a value" % (input, ordinal(index + 1)),
                    title="option value expected",
                    code=FaultCode.OPTION_VALUE_EXPECTED,
                    input=input,
                    index=index,
                    hint="pass it after a space or an '=' (for example: %s=<value>)" % input,
                ))
                return Unset
        return found

    def _convert(self, declaration, input, index, raw):
        if raw is Unset:
            return True
        value = self._converters.parse(declaration.type, raw)
        if value is not Unset:
            return value
        if declaration.kind.positional:
            subject = "argument <%s>" % input
        else:
            subject = "option %r" % input
        self._state.fail(UnparsableValueError(
            "%s at %s position can't be parsed: %r is not a valid %s" % (
                subject, ordinal(index + 1), raw, typename(declaration.type)
            ),
            title="unparsable value",
            code=FaultCode.UNPARSABLE_VALUE,
            input=input,
            index=index,
            value=raw,
            hint="pass a value of type %s" % typename(declaration.type),
        ))
        return Unset

    def _missing(self, declaration):
        if not declaration.required:
            return declaration.fallback()
        if declaration.kind.positional:
            self._state.fail(MissingArgumentError(
                "required argument <%s> is missing" % declaration.label,
                title="missing argument",
                code=FaultCode.MISSING_ARGUMENT,
                input=declaration.label,
                hint="pass a value for <%s>; %s" % (declaration.label, self._hint()),
            ))
        else:
            names = " (or %s)" % declaration.alias if declaration.alias and declaration.name else ""
            self._state.fail(MissingOptionError(
                "required option %r%s is missing" % (declaration.label, names),
                title="missing option",
                code=FaultCode.MISSING_OPTION,
                input=declaration.label,
                hint="pass it as '%s'" % declaration.label if self._converters.flag(declaration.type) else
                     "pass it as '%s <%s>'" % (declaration.label, coalesce(declaration.metavar, "value")),
            ))
        return declaration.empty

    def _option(self, declaration):
        if not self._ready():
            return declaration.empty
        if (found := self._collect(declaration)) is Unset:
            return declaration.empty
        if not found:
            return self._missing(declaration)
        # Every occurrence is consumed; only the last one decides the value.
        value = self._convert(declaration, *found[-1])
        return declaration.empty if value is Unset else value

    def _option_list(self, declaration):
        if not self._ready():
            return declaration.empty
        if (found := self._collect(declaration)) is Unset:
            return declaration.empty
        if not found:
            return self._missing(declaration)
        values = []
        for input, index, raw in found:
            if (value := self._convert(declaration, input, index, raw)) is Unset:
                return declaration.empty
            values.append(value)
        return tuple(values)

    def _argument(self, declaration):
        if not self._ready():
            return declaration.empty
        if (index := self._store.next_unconsumed(self._lower)) is None:
            return self._missing(declaration)
        self._store.consume(index)
        value = self._convert(declaration, declaration.label, index, self._store[index].text)
        return declaration.empty if value is Unset else value

    def _argument_list(self, declaration):
        if not self._ready():
            return declaration.empty
        indexes = [index for index in range(self._lower, len(self._store)) if not self._store.consumed(index)]
        if not indexes:
            return self._missing(declaration)
        values = []
        for index in indexes:
            self._store.consume(index)
        for index in indexes:
            value = self._convert(declaration, declaration.label, index, self._store[index].text)
            if value is Unset:
                return declaration.empty
            values.append(value)
        return tuple(values)

    def _command(self, declaration, configure):
        if not self._ready():
            return
        if (index := self._store.next_unconsumed(self._lower)) is None:
            return
        token = self._store[index]
        if token.option or token.text != declaration.name:
            return
        self._store.consume(index)
        self._state.descend(Child(declaration.name, configure, index, declaration.descr))

    def _check(self, predicate, message):
        if not self._ready():
            return
        if not predicate():
            self._state.fail(FailedCheckError(
                message,
                title="failed check",
                code=FaultCode.FAILED_CHECK,
                hint=self._hint(),
            ))

    def _descr(self, text):
        pass

    def _handler(self, handler):
        if self._state.active:
            self._state.bind(handler)

    def finish(self):
        """
        Close the level: probe for help, then report any unconsumed token.

        Help wins over a recorded fault. Leftover tokens only matter when
        the level resolves the command line itself (no help, fault or child).
        """
        state = self._state
        self._probe()
        if not (state.help_requested or state.fault or state.child):
            if (index := self._store.next_unconsumed()) is not None:
                token = self._store[index]
                if token.option:
                    message = "unknown option %r at %s position" % (token.text, ordinal(index + 1))
                    title = "unknown option"
                else:
                    message = "unexpected argument %r at %s position" % (token.text, ordinal(index + 1))
                    title = "unexpected argument"
                state.fail(UnknownTokenError(
                    message,
                    title=title,
                    code=FaultCode.UNKNOWN_TOKEN,
                    input=token.text,
                    index=index,
                    hint="remove it or %s" % self._hint(),
                ))
        state.finish()
        return state


__all__ = (
    "Kind",
    "Phase",
    "Child",
    "Declaration",
    "ParseState",
    "DeclarationVisitor",
    "Describer",
    "Extractor",
)
