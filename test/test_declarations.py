"""
Declaration engine tests (records, visitors, extraction rules).

Scope
- Declaration validation: names, reserved help spellings, default wiring.
- Declaration helpers: label, empty value, fallback, representation.
- Describer: metadata only, no factories or predicates evaluated.
- Extractor: driven directly against a TokenStore and a ParseState.
- ParseState: first fault wins, phases only move forward.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from cmdweave import (
    Kind,
    Child,
    Phase,
    Declaration,
    Describer,
    Extractor,
    ParseState,
    Converters,
    ConfigurationError,
    MissingOptionError,
    FailedCheckError,
    tokenize,
)


class TestDeclarationValidation(TestCase):
    """Programmer errors are raised while declaring."""

    def testHelpSpellingsAreReserved(self):
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION, "-h")
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION_LIST, "--help")

    def testMalformedNames(self):
        for names in (("verbose",), ("--1st",), ("-ab",), ("---x",), ("-=",), ("--a_b",)):
            with self.subTest(names=names):
                with self.assertRaises(ValueError):
                    Declaration(Kind.OPTION, *names)

    def testOneSpellingOfEachShape(self):
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION, "--first", "--second")
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION, "-a", "-b")

    def testOptionsNeedAName(self):
        with self.assertRaises(TypeError):
            Declaration(Kind.OPTION)
        with self.assertRaises(TypeError):
            Declaration(Kind.OPTION, 42)

    def testArgumentsTakeNoNames(self):
        with self.assertRaises(TypeError):
            Declaration(Kind.ARGUMENT, "-x")

    def testCommandNames(self):
        self.assertEqual(Declaration(Kind.COMMAND, "dry-run").name, "dry-run")
        with self.assertRaises(ValueError):
            Declaration(Kind.COMMAND, "--run")
        with self.assertRaises(TypeError):
            Declaration(Kind.COMMAND, "a", "b")

    def testRequiredWithDefault(self):
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION, "--level", required=True, default=1)
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION, "--level", required=True, factory=int)

    def testDefaultAndFactoryAreExclusive(self):
        with self.assertRaises(TypeError):
            Declaration(Kind.OPTION, "--level", default=1, factory=int)
        with self.assertRaises(TypeError):
            Declaration(Kind.OPTION, "--level", factory=1)

    def testListDefaultMustNotBeAString(self):
        with self.assertRaises(TypeError):
            Declaration(Kind.OPTION_LIST, "--include", default="abc")

    def testEmptyHelpStrings(self):
        with self.assertRaises(ValueError):
            Declaration(Kind.OPTION, "--level", descr="  ")
        with self.assertRaises(TypeError):
            Declaration(Kind.ARGUMENT, metavar=3)


class TestDeclarationHelpers(TestCase):
    """label, empty, fallback and repr."""

    def testLabelPrefersLongName(self):
        self.assertEqual(Declaration(Kind.OPTION, "-n", "--name").label, "--name")
        self.assertEqual(Declaration(Kind.OPTION, "-n").label, "-n")
        self.assertEqual(Declaration(Kind.ARGUMENT, metavar="FILE").label, "FILE")

    def testEmptyValues(self):
        self.assertIs(Declaration(Kind.OPTION, "-v", type=bool).empty, False)
        self.assertIsNone(Declaration(Kind.OPTION, "-v", type=bool | None).empty)
        self.assertIsNone(Declaration(Kind.OPTION, "-n", type=int).empty)
        self.assertEqual(Declaration(Kind.OPTION_LIST, "-i").empty, ())
        self.assertEqual(Declaration(Kind.ARGUMENT_LIST).empty, ())

    def testFallback(self):
        self.assertEqual(Declaration(Kind.OPTION, "-n", type=int, default=5).fallback(), 5)
        self.assertEqual(Declaration(Kind.OPTION_LIST, "-i", factory=lambda: ["a", "b"]).fallback(), ("a", "b"))
        self.assertIsNone(Declaration(Kind.ARGUMENT, default=None).fallback())
        self.assertIsNone(Declaration(Kind.ARGUMENT).fallback())

    def testFieldsAreReadOnly(self):
        declaration = Declaration(Kind.OPTION, "-n")
        with self.assertRaises(AttributeError):
            declaration.name = "--name"  # type: ignore[misc]

    def testRepresentation(self):
        declaration = Declaration(Kind.OPTION, "-v", "--verbose", type=bool)
        self.assertEqual(Declaration.__typename__, "declaration")
        self.assertTrue(repr(declaration).startswith("declaration(kind="))
        self.assertIn("name='--verbose'", repr(declaration))
        self.assertNotIn("factory", repr(declaration))


class TestDescriber(TestCase):
    """Describer records what a level declares and nothing else."""

    def testEmptyValuesAndNoSideEffects(self):
        calls = []
        describer = Describer(path=("prog",))
        self.assertIs(describer.option("-v", "--verbose", type=bool), False)
        self.assertIsNone(describer.option("--level", type=int, factory=lambda: calls.append("factory")))
        self.assertEqual(describer.option_list("-i"), ())
        self.assertIsNone(describer.argument(int))
        self.assertEqual(describer.argument_list(), ())
        describer.check(lambda: calls.append("check"), "never evaluated")
        self.assertEqual(calls, [])

    def testCollections(self):
        def add(p):
            pass

        describer = Describer(path=("prog",))
        describer.descr("tiny calculator")
        describer.option("-v")
        describer.argument(metavar="FILE")
        describer.command("add", add, descr="add two numbers")
        describer.command("secret", add, hidden=True)

        self.assertEqual(describer.description, "tiny calculator")
        self.assertEqual([x.label for x in describer.options], ["-v"])
        self.assertEqual([x.label for x in describer.arguments], ["FILE"])
        self.assertEqual([x.name for x in describer.commands], ["add", "secret"])
        self.assertEqual(describer.names, frozenset({"add", "secret"}))
        self.assertEqual(describer.prog, "prog")

    def testDefaultPlaceholders(self):
        describer = Describer()
        describer.argument()
        describer.argument(metavar="FILE")
        describer.argument_list()
        self.assertEqual([x.metavar for x in describer.arguments], ["argument1", "FILE", "argument3"])

    def testDuplicateNames(self):
        describer = Describer()
        describer.option("-v", "--verbose")
        with self.assertRaises(ValueError):
            describer.option("-v", "--verb")
        with self.assertRaises(ValueError):
            describer.option_list("--verbose")

    def testArgumentAfterArgumentList(self):
        describer = Describer()
        describer.argument_list()
        with self.assertRaises(ConfigurationError):
            describer.argument()

    def testUnsupportedType(self):
        with self.assertRaises(ConfigurationError):
            Describer().option("--value", type=complex)

    def testSameDeclarationsInBothVariants(self):
        def configure(p):
            p.option("-n", "--name")
            p.option_list("--include", type=int)
            p.argument(metavar="FILE")
            p.argument_list(float)

        describer = Describer()
        configure(describer)
        extractor = Extractor(Converters(), tokenize(["a", "1.5"]), ParseState())
        configure(extractor)
        self.assertEqual(
            [(x.kind, x.label) for x in describer.declarations],
            [(x.kind, x.label) for x in extractor.declarations],
        )

    def testDeclarationsAreCopied(self):
        describer = Describer()
        describer.option("-v")
        describer.declarations.clear()
        self.assertEqual(len(describer.declarations), 1)


class TestExtractor(TestCase):
    """Extractor driven directly against one level."""

    def testHelpInterruptsTheLevel(self):
        store = tokenize(["--help", "stray"])
        extractor = Extractor(Converters(), store, ParseState())
        self.assertIsNone(extractor.option("--name"))
        state = extractor.finish()
        self.assertTrue(state.help_requested)
        self.assertIs(state.phase, Phase.FINISHED)
        self.assertIsNone(state.fault)
        self.assertTrue(store.consumed(0))
        self.assertFalse(store.consumed(1))

    def testHelpIsLookedUpOncePerLevel(self):
        store = tokenize(["-v"])
        state = ParseState()
        extractor = Extractor(Converters(), store, state)
        self.assertTrue(extractor.option("-v", type=bool))
        self.assertTrue(state.help_checked)
        self.assertFalse(state.help_requested)
        self.assertIs(extractor.finish(), state)
        self.assertIsNone(state.fault)

    def testFactoryOnlyWhenAbsent(self):
        calls = []

        def factory():
            calls.append(1)
            return 10

        extractor = Extractor(Converters(), tokenize(["--level", "3"]), ParseState())
        self.assertEqual(extractor.option("--level", type=int, factory=factory), 3)
        self.assertEqual(calls, [])

        extractor = Extractor(Converters(), tokenize([]), ParseState())
        self.assertEqual(extractor.option("--level", type=int, factory=factory), 10)
        self.assertEqual(calls, [1])

    def testFirstFaultWins(self):
        state = ParseState()
        extractor = Extractor(Converters(), tokenize([]), state)
        extractor.option("--name", required=True)
        extractor.check(lambda: False, "never reached")
        self.assertIsInstance(state.fault, MissingOptionError)
        self.assertIs(state.phase, Phase.INTERRUPTED)

    def testFailedCheck(self):
        state = ParseState()
        extractor = Extractor(Converters(), tokenize(["-n", "0"]), state)
        level = extractor.option("-n", type=int)
        extractor.check(lambda: level > 0, "level must be positive")
        self.assertIsInstance(state.fault, FailedCheckError)
        self.assertEqual(state.fault.message, "level must be positive")

    def testMatchedCommandCarriesItsConfiguration(self):
        def add(p):
            pass

        store = tokenize(["add", "1"])
        state = ParseState()
        extractor = Extractor(Converters(), store, state, commands=frozenset({"add"}))
        extractor.command("add", add, descr="add two numbers")
        self.assertEqual(state.child, Child("add", add, 0, "add two numbers"))
        self.assertIs(state.phase, Phase.INTERRUPTED)
        self.assertTrue(store.consumed(0))
        self.assertFalse(store.consumed(1))

    def testArgumentsIgnoreTheCommandBound(self):
        store = tokenize(["add", "-v", "add"])
        extractor = Extractor(Converters(), store, ParseState(), commands=frozenset({"add"}))
        self.assertIs(extractor.option("-v", type=bool), False)
        self.assertEqual(extractor.argument_list(), ("add", "-v", "add"))

    def testScopeStopsAtCommandName(self):
        store = tokenize(["-v", "sub", "-v"])
        extractor = Extractor(Converters(), store, ParseState(), commands=frozenset({"sub"}))
        self.assertTrue(extractor.option("-v", type=bool))
        self.assertFalse(store.consumed(2))


class TestParseState(TestCase):
    """Lifecycle of one level's state."""

    def testFailKeepsTheFirstFault(self):
        state = ParseState()
        first = MissingOptionError("first")
        state.fail(first)
        state.fail(MissingOptionError("second"))
        self.assertIs(state.fault, first)
        self.assertFalse(state.active)

    def testFailRejectsOtherExceptions(self):
        with self.assertRaises(TypeError):
            ParseState().fail(ValueError("nope"))

    def testFinish(self):
        state = ParseState()
        self.assertIs(state.phase, Phase.ACTIVE)
        state.finish()
        self.assertIs(state.phase, Phase.FINISHED)


if __name__ == "__main__":
    unittest.main()
