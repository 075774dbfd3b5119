# python
"""
Acceptor behavioral tests.

Scope
- Validate the three acceptor kinds: identity, pattern (whole-input match, captures
  passed positionally to the converter) and enum (literal string forms).
- Validate the acceptor() factory dispatch and coerce() normalization of inline specs.
- Validate error reporting: AcceptanceError for rejected input or failed conversion,
  IllegalAcceptorError for unsupported declarations.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import re
import unittest
from unittest import TestCase

from arbor import (
    DEFAULT,
    AcceptanceError,
    Acceptor,
    EnumAcceptor,
    IllegalAcceptorError,
    PatternAcceptor,
    acceptor,
    coerce,
)


class TestPatternAcceptor(TestCase):
    """Regular-expression acceptors must match the entire input."""

    def testDigitsRejectTrailingLetters(self):
        number = acceptor("number", r"^\d+$", int)
        with self.assertRaises(AcceptanceError) as caught:
            number.validate_and_convert("12a")
        self.assertEqual(caught.exception.options["input"], "12a")

    def testDigitsAcceptedAndConverted(self):
        number = acceptor("number", r"^\d+$", int)
        self.assertEqual(number.validate_and_convert("12"), 12)

    def testPartialMatchIsRejectedWithoutAnchors(self):
        number = acceptor("number", r"\d+")
        with self.assertRaises(AcceptanceError):
            number.validate_and_convert("12a")

    def testIdentityConverterReturnsWholeMatch(self):
        self.assertEqual(acceptor("word", r"[a-z]+").validate_and_convert("abc"), "abc")

    def testCapturesArePassedPositionally(self):
        pair = acceptor("pair", r"(\d+):(\d+)", lambda whole, left, right: (whole, int(left), int(right)))
        self.assertEqual(pair.validate_and_convert("3:4"), ("3:4", 3, 4))

    def testCompiledPatternIsAccepted(self):
        self.assertIsInstance(acceptor("hex", re.compile(r"[0-9a-f]+")), PatternAcceptor)

    def testIllegalPatternRaises(self):
        with self.assertRaises(IllegalAcceptorError):
            acceptor("broken", r"(unclosed")

    def testConverterFailureBecomesAcceptanceError(self):
        def explode(value):
            raise ValueError("nope")

        with self.assertRaises(AcceptanceError) as caught:
            acceptor("boom", r".*", explode).validate_and_convert("x")
        self.assertIsInstance(caught.exception.__cause__, ValueError)


class TestEnumAcceptor(TestCase):
    """Enum acceptors compare literal string forms and return the original value."""

    def testExactFormsAccepted(self):
        color = acceptor("color", ["red", "green", "blue"])
        for value in ("red", "green", "blue"):
            self.assertEqual(color.validate_and_convert(value), value)

    def testCaseMismatchRejected(self):
        color = acceptor("color", ["red", "green", "blue"])
        with self.assertRaises(AcceptanceError):
            color.validate_and_convert("Red")

    def testOriginalValueReturned(self):
        level = acceptor("level", [1, 2, 3])
        self.assertEqual(level.validate_and_convert("2"), 2)

    def testConverterIsRejected(self):
        with self.assertRaises(IllegalAcceptorError):
            acceptor("color", ["red"], str.upper)

    def testEmptyValuesRejected(self):
        with self.assertRaises(IllegalAcceptorError):
            EnumAcceptor("nothing", [])

    def testDuplicateFormsRejected(self):
        with self.assertRaises(IllegalAcceptorError):
            EnumAcceptor("dupes", [1, "1"])


class TestFactory(TestCase):
    """acceptor() and coerce() normalization."""

    def testNoValidatorIsIdentity(self):
        plain = acceptor("plain")
        self.assertIs(type(plain), Acceptor)
        self.assertEqual(plain.validate_and_convert("anything"), "anything")

    def testIllegalValidatorRaises(self):
        with self.assertRaises(IllegalAcceptorError):
            acceptor("bad", 42)

    def testEmptyNameRejected(self):
        with self.assertRaises(IllegalAcceptorError):
            acceptor("")

    def testCoerceUnsetGivesDefault(self):
        self.assertIs(coerce(None), DEFAULT)

    def testCoerceCallableWrapsConverter(self):
        integer = coerce(int)
        self.assertEqual(integer.name, "int")
        self.assertEqual(integer.validate_and_convert("7"), 7)
        with self.assertRaises(AcceptanceError):
            integer.validate_and_convert("seven")

    def testCoerceListBuildsEnum(self):
        self.assertIsInstance(coerce(["a", "b"]), EnumAcceptor)

    def testCoerceKeepsAcceptors(self):
        number = acceptor("number", r"\d+", int)
        self.assertIs(coerce(number), number)

    def testCoerceRejectsOtherValues(self):
        with self.assertRaises(IllegalAcceptorError):
            coerce(3.5)


if __name__ == "__main__":
    unittest.main()
