"""
Cmdweave command state machine.

Overview
- parse(configure, args): walk the command levels with an explicit loop and
  return an Outcome. No I/O, no exit, no exceptions for user mistakes.
- run(configure, args): the shell-facing shim. Surfaces warnings, renders help
  or the fault (with contextual help), calls the injected exit action, or runs
  the resolved handler.

Levels
1. describe the level with a Describer (help metadata, command names);
2. run the configuration with an Extractor against the shared TokenStore;
3. finish the level (help probe, leftover scan);
4. help requested → HELP_REQUESTED; fault → ERROR; matched command → loop
   into the child configuration from the token after the command verb;
   otherwise SUCCESS at the root, HANDLED below it.

Example
    >>> def add(p):
    ...     left = p.argument(int, required=True)
    ...     right = p.argument(int, required=True)
    ...     p.handler(lambda: print(left + right))
    ...
    >>> def configure(p):
    ...     p.descr("tiny calculator")
    ...     p.command("add", add, descr="add two numbers")
    ...
    >>> parse(configure, ["add", "1", "7"]).status
    <Status.HANDLED: 1>
"""
import os
import sys
from collections import namedtuple
from collections.abc import Iterable
from enum import IntEnum

from rich.console import Console

from .converters import Converters
from .declarations import Describer, Extractor, ParseState
from .faults import trigger
from .help import render
from .tokens import tokenize
from .utils import *


class Status(IntEnum):
    SUCCESS = 0
    HANDLED = 1
    HELP_REQUESTED = 2
    ERROR = 3


class Outcome(namedtuple("Outcome", ("status", "fault", "handler", "path", "help", "warnings"))):
    """
    Terminal classification of a parse call.

    Fields
    - status: Status
    - fault: the first UserInputError (ERROR only), else None
    - handler: the resolved level's handler (SUCCESS/HANDLED only), else None
    - path: command names from the program down to the resolved level
    - help: the resolved level's Describer (usage, options, commands)
    - warnings: tuple of CommandWarning collected along the way
    """
    __slots__ = ()

    @property
    def reason(self):
        return None if self.fault is None else self.fault.message


def _sanitize_arguments(args, /):
    if args is Unset:
        return sys.argv[1:]
    if isinstance(args, str) or not isinstance(args, Iterable):
        raise TypeError("parse() second argument must be an iterable of strings")
    return list(args)


def parse(configure, args=Unset, /, *, name=Unset, descr=Unset, converters=Unset):
    """
    Parse args against the declarations made by configure(visitor).

    Parameters
    - configure: callable receiving a DeclarationVisitor; called once per
      variant (Describer, Extractor) for every level on the way down.
    - args: Unset (sys.argv[1:]) or an iterable of strings.
    - name: program name shown in help and hints (default: basename of argv[0]).
    - descr: description of the root level (the configuration may override it).
    - converters: Converters registry (default: a fresh one).

    Returns
    - Outcome

    Raises
    - ConfigurationError, TypeError, ValueError: invalid declarations.
    """
    if not callable(configure):
        raise TypeError("parse() first argument must be callable")
    if not isinstance(name := coalesce(name, os.path.basename(sys.argv[0]) or "program"), str):
        raise TypeError("parse() 'name' must be a string")
    if converters is Unset:
        converters = Converters()

    store = tokenize(_sanitize_arguments(args))
    path = (name,)
    lower = 0
    warnings = []

    while True:
        describer = Describer(converters, path=path, descr=descr)
        configure(describer)

        extractor = Extractor(converters, store, ParseState(), lower=lower, commands=describer.names, path=path)
        configure(extractor)
        state = extractor.finish()
        warnings.extend(state.warnings)

        if state.help_requested:
            return Outcome(Status.HELP_REQUESTED, None, None, path, describer, tuple(warnings))
        if state.fault is not None:
            return Outcome(Status.ERROR, state.fault, None, path, describer, tuple(warnings))
        if (child := state.child) is None:
            status = Status.SUCCESS if len(path) == 1 else Status.HANDLED
            return Outcome(status, None, state.handler, path, describer, tuple(warnings))

        # The matched command's own declarations start right after its verb.
        path += (child.name,)
        configure = child.configure
        descr = child.descr
        lower = child.index + 1


def run(
        configure,
        args=Unset,
        /,
        *,
        name=Unset,
        descr=Unset,
        converters=Unset,
        shell=True,
        fancy=False,
        colorful=True,
        exit=sys.exit,
        console=Unset,
):
    """
    Parse args and act on the Outcome.

    - warnings are triggered first (printed in shell mode, warnings.warn otherwise);
    - HELP_REQUESTED: help is rendered to stdout, then exit(0);
    - ERROR: the fault is triggered (printed in shell mode, raised otherwise),
      contextual help is rendered to stderr, then exit(1);
    - SUCCESS/HANDLED: the resolved handler, if any, is called.

    Returns the Outcome when exit returns (an injected exit action).
    """
    if not callable(exit):
        raise TypeError("run() 'exit' must be callable")

    outcome = parse(configure, args, name=name, descr=descr, converters=converters)
    options = {
        "prog": " ".join(outcome.path),
        "shell": shell,
        "fancy": fancy,
        "colorful": colorful,
    }
    if console is not Unset:
        options["console"] = console

    for warning in outcome.warnings:
        trigger(warning, **options)

    match outcome.status:
        case Status.HELP_REQUESTED:
            render(outcome.help, console=Console() if console is Unset else console, fancy=fancy, colorful=colorful)
            exit(0)
        case Status.ERROR:
            trigger(outcome.fault, **options)
            render(outcome.help, console=Console(stderr=True) if console is Unset else console, fancy=fancy, colorful=colorful)
            exit(1)
        case _:
            if outcome.handler is not None:
                outcome.handler()
    return outcome


__all__ = (
    "Status",
    "Outcome",
    "parse",
    "run",
)
