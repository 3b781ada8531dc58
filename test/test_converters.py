"""
Converter registry tests.

Scope
- Built-in kinds: str, bool, Char, int, fixed-width integers, float, Decimal,
  datetime, Enum and optional-of.
- Failure modes: Unset for unparseable text, ConfigurationError for
  unsupported types.
- Per-instance registration (function and decorator forms) and flag shape.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import unittest
from typing import Optional
from unittest import TestCase

from cmdweave import Converters, ConfigurationError, Char, Int8, UInt8, Int64, UInt16, typename
from cmdweave.utils import Unset


class Color(enum.Enum):
    RED = "r"
    GREEN = "g"


class TestBuiltinKinds(TestCase):
    """Behavioral tests for the built-in parsers."""

    def setUp(self):
        self.converters = Converters()

    def testText(self):
        self.assertEqual(self.converters.parse(str, " spaced "), " spaced ")

    def testBooleanSpellings(self):
        for text, expected in (("true", True), ("TRUE", True), ("1", True), ("False", False), ("0", False)):
            with self.subTest(text=text):
                self.assertIs(self.converters.parse(bool, text), expected)
        self.assertIs(self.converters.parse(bool, "yes"), Unset)

    def testCharacter(self):
        self.assertEqual(self.converters.parse(Char, "x"), "x")
        self.assertIsInstance(self.converters.parse(Char, "x"), Char)
        self.assertIs(self.converters.parse(Char, "xy"), Unset)
        self.assertIs(self.converters.parse(Char, ""), Unset)

    def testIntegers(self):
        self.assertEqual(self.converters.parse(int, " 42 "), 42)
        self.assertEqual(self.converters.parse(int, "+7"), 7)
        self.assertEqual(self.converters.parse(int, "-91"), -91)
        self.assertIs(self.converters.parse(int, "1_000"), Unset)
        self.assertIs(self.converters.parse(int, "4.2"), Unset)
        self.assertIs(self.converters.parse(int, "notanumber"), Unset)

    def testFixedWidthIntegers(self):
        self.assertEqual(self.converters.parse(Int8, "127"), 127)
        self.assertIsInstance(self.converters.parse(Int8, "-128"), Int8)
        self.assertIs(self.converters.parse(Int8, "128"), Unset)
        self.assertIs(self.converters.parse(UInt8, "-1"), Unset)
        self.assertEqual(self.converters.parse(UInt16, "65535"), 65535)
        self.assertEqual(self.converters.parse(Int64, str(Int64.min)), Int64.min)

    def testFixedWidthBounds(self):
        self.assertEqual((Int8.min, Int8.max), (-128, 127))
        self.assertEqual((UInt8.min, UInt8.max), (0, 255))
        with self.assertRaises(ValueError):
            UInt8(256)

    def testFloatingPoint(self):
        self.assertEqual(self.converters.parse(float, "2.5"), 2.5)
        self.assertIs(self.converters.parse(float, "two"), Unset)

    def testNonFiniteNumbersAreRejected(self):
        for text in ("nan", "inf", "-inf", "Infinity"):
            with self.subTest(text=text):
                self.assertIs(self.converters.parse(float, text), Unset)
                self.assertIs(self.converters.parse(decimal.Decimal, text), Unset)
        self.assertEqual(self.converters.parse(float, "1e308"), 1e308)

    def testDecimal(self):
        self.assertEqual(self.converters.parse(decimal.Decimal, "1.10"), decimal.Decimal("1.10"))
        self.assertIs(self.converters.parse(decimal.Decimal, "NaN"), Unset)
        self.assertIs(self.converters.parse(decimal.Decimal, "Infinity"), Unset)
        self.assertIs(self.converters.parse(decimal.Decimal, "one"), Unset)

    def testTimestampIsNormalizedToUtc(self):
        value = self.converters.parse(datetime.datetime, "2024-05-01T10:00:00+02:00")
        self.assertEqual(value, datetime.datetime(2024, 5, 1, 8, 0, tzinfo=datetime.timezone.utc))
        self.assertEqual(value.utcoffset(), datetime.timedelta(0))

    def testNaiveTimestampStaysNaive(self):
        value = self.converters.parse(datetime.datetime, "2024-05-01 10:00")
        self.assertEqual(value, datetime.datetime(2024, 5, 1, 10, 0))
        self.assertIsNone(value.tzinfo)
        self.assertIs(self.converters.parse(datetime.datetime, "yesterday"), Unset)

    def testEnumerationByMemberName(self):
        self.assertIs(self.converters.parse(Color, "red"), Color.RED)
        self.assertIs(self.converters.parse(Color, "GREEN"), Color.GREEN)
        self.assertIs(self.converters.parse(Color, "r"), Unset)

    def testOptionalOf(self):
        self.assertEqual(self.converters.parse(int | None, "3"), 3)
        self.assertEqual(self.converters.parse(Optional[int], "3"), 3)
        self.assertIs(self.converters.parse(Optional[int], "x"), Unset)


class TestRegistry(TestCase):
    """Registration, lookup order and configuration errors."""

    def testUnsupportedTypeIsConfigurationError(self):
        converters = Converters()
        with self.assertRaises(ConfigurationError):
            converters.resolve(complex)
        with self.assertRaises(ConfigurationError):
            converters.parse(int | str, "1")
        self.assertFalse(complex in converters)
        self.assertTrue(int in converters)

    def testConfigurationErrorIsTypeError(self):
        self.assertTrue(issubclass(ConfigurationError, TypeError))

    def testRegisterCustomType(self):
        converters = Converters()
        converters.register(complex, complex)
        self.assertEqual(converters.parse(complex, "1+2j"), complex(1, 2))
        self.assertEqual(converters.parse(complex | None, "1+2j"), complex(1, 2))
        self.assertIs(converters.parse(complex, "nope"), Unset)

    def testRegisterAsDecorator(self):
        converters = Converters()

        @converters.register(int)
        def hexadecimal(text):
            return int(text, 16)

        self.assertEqual(hexadecimal("ff"), 255)
        self.assertEqual(converters.parse(int, "ff"), 255)

    def testRegistriesAreIndependent(self):
        first = Converters()
        second = Converters()
        first.register(complex, complex)
        self.assertTrue(complex in first)
        self.assertFalse(complex in second)
        self.assertEqual(second.parse(int, "10"), 10)

    def testConstructorMapping(self):
        converters = Converters({complex: complex})
        self.assertEqual(converters.parse(complex, "3j"), 3j)

    def testRegisterRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            Converters().register(complex, "complex")

    def testFlagShape(self):
        self.assertTrue(Converters.flag(bool))
        self.assertTrue(Converters.flag(bool | None))
        self.assertFalse(Converters.flag(int))
        self.assertFalse(Converters.flag(str))

    def testTypename(self):
        self.assertEqual(typename(int), "int")
        self.assertEqual(typename(Int8 | None), "Int8 | None")


if __name__ == "__main__":
    unittest.main()
