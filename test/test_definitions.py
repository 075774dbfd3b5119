# python
"""
Definition behavioral tests.

Scope
- Validate the fixed switch grammar (FlagSyntax) and derived switches.
- Validate flag collision modes: reported, suppressed (newest flag wins) and only-unique.
- Validate positional slot ordering rules and key uniqueness across flags and args.
- Validate lifecycle rules: disabled argument parsing, finished definitions, source locking.
- Validate name scoping of acceptors, mixins and templates through ancestor namespaces.

Conventions
- Test method names follow CamelCase per project convention.
- Definitions are built through a Loader and ToolBuilder, the way configuration code builds them.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from arbor import (
    ArgCollisionError,
    DefinitionError,
    FinishedDefinitionError,
    Flag,
    FlagCollisionError,
    FlagSyntax,
    Loader,
    ParsingDisabledError,
    Template,
    UnresolvedNameError,
)


def build(configure, name="tool"):
    loader = Loader()
    loader.add_block(lambda tool: tool.tool(name, configure))
    definition, _ = loader.lookup([name])
    return definition


class TestFlagSyntax(TestCase):
    """Every spelling of the switch grammar."""

    def testShortToggle(self):
        syntax = FlagSyntax("-a")
        self.assertEqual(syntax.switches, ("-a",))
        self.assertTrue(syntax.boolean)
        self.assertEqual(syntax.style, "short")

    def testQuestionMarkSwitch(self):
        self.assertEqual(FlagSyntax("-?").switches, ("-?",))

    def testShortRequiredValueForms(self):
        spaced = FlagSyntax("-a VALUE")
        attached = FlagSyntax("-aVALUE")
        self.assertEqual((spaced.value_type, spaced.value_delim), ("required", " "))
        self.assertEqual((attached.value_type, attached.value_delim), ("required", ""))
        self.assertEqual(spaced.switches, attached.switches)

    def testAttachedLowercaseValueRejected(self):
        # "-ab" reads as two toggles, not "-a" with a value named b
        with self.assertRaises(DefinitionError):
            FlagSyntax("-ab")
        self.assertEqual(FlagSyntax("-a b").value_label, "b")

    def testShortOptionalValueForms(self):
        self.assertEqual(FlagSyntax("-a [VALUE]").canonical, "-a [VALUE]")
        self.assertEqual(FlagSyntax("-a[VALUE]").canonical, "-a[VALUE]")
        self.assertEqual(FlagSyntax("-a[VALUE]").value_type, "optional")

    def testLongForms(self):
        self.assertEqual(FlagSyntax("--abc").switches, ("--abc",))
        self.assertEqual(FlagSyntax("--abc=VALUE").value_delim, "=")
        self.assertEqual(FlagSyntax("--abc VALUE").value_delim, " ")
        self.assertEqual(FlagSyntax("--abc[=VALUE]").canonical, "--abc[=VALUE]")
        self.assertEqual(FlagSyntax("--abc [VALUE]").canonical, "--abc [VALUE]")
        self.assertEqual(FlagSyntax("--abc [VALUE]").value_type, "optional")

    def testNegatable(self):
        syntax = FlagSyntax("--[no-]recursive")
        self.assertEqual(syntax.switches, ("--recursive", "--no-recursive"))
        self.assertTrue(syntax.negatable)
        self.assertEqual(syntax.canonical, "--[no-]recursive")

    def testIllegalSpellingRaises(self):
        for spelling in ("abc", "---abc", "-", "--=VALUE"):
            with self.subTest(spelling=spelling), self.assertRaises(DefinitionError):
                FlagSyntax(spelling)


class TestFlags(TestCase):
    """Flag construction and the collision modes."""

    def testMixedToggleAndValueRejected(self):
        with self.assertRaises(DefinitionError):
            Flag("mixed", ["-m", "--mixed=VALUE"])

    def testUnknownHandlerRejected(self):
        with self.assertRaises(DefinitionError):
            Flag("x", ["-x"], handler="append")

    def testDerivedSwitches(self):
        definition = build(lambda tool: (
            tool.flag("dry_run")
                .flag("v")
                .flag("level", accept=int)
        ))
        self.assertEqual(definition.flags["dry_run"].switches, ["--dry-run"])
        self.assertEqual(definition.flags["v"].switches, ["-v"])
        self.assertEqual(definition.flags["level"].syntaxes[0].canonical, "--level=VALUE")

    def testDuplicateKeyReported(self):
        with self.assertRaises(FlagCollisionError):
            build(lambda tool: tool.flag("all", "-a").flag("all", "--all"))

    def testDuplicateSwitchReported(self):
        with self.assertRaises(FlagCollisionError) as caught:
            build(lambda tool: tool.flag("all", "-a").flag("append", "-a"))
        self.assertEqual(caught.exception.options["switch"], "-a")

    def testSuppressedCollisionNewFlagWins(self):
        definition = build(lambda tool: (
            tool.flag("all", "-a", "--all")
                .flag("append", "-a", report_collisions=False)
        ))
        self.assertEqual(definition.used_switches["-a"].key, "append")
        self.assertEqual(definition.flags["all"].switches, ["--all"])

    def testSuppressedCollisionDropsEmptiedFlag(self):
        definition = build(lambda tool: (
            tool.flag("all", "-a")
                .flag("append", "-a", report_collisions=False)
        ))
        self.assertNotIn("all", definition.flags)
        self.assertNotIn("all", definition.default_data)

    def testSuppressedCollisionReplacesSameKey(self):
        definition = build(lambda tool: (
            tool.flag("out", "-o FILE")
                .flag("out", "--out=FILE", report_collisions=False)
        ))
        self.assertEqual(definition.flags["out"].switches, ["--out"])
        self.assertNotIn("-o", definition.used_switches)

    def testOnlyUniqueSkipsClaimedSwitches(self):
        definition = build(lambda tool: tool.flag("helpful", "--help"))
        # only_unique is how middleware adds its flags
        added = definition.add_flag("_show_help", ["-?", "--help"], only_unique=True)
        self.assertEqual(added.switches, ["-?"])
        self.assertEqual(definition.used_switches["--help"].key, "helpful")

    def testOnlyUniqueSkipsFlagWithNothingLeft(self):
        definition = build(lambda tool: tool.flag("helpful", "-?", "--help"))
        self.assertIsNone(definition.add_flag("_show_help", ["-?", "--help"], only_unique=True))
        self.assertNotIn("_show_help", definition.flags)


class TestArgs(TestCase):
    """Positional slot ordering and key uniqueness."""

    def testSlotsKeepOrder(self):
        definition = build(lambda tool: (
            tool.required_arg("target")
                .optional_arg("mode", default="debug")
                .remaining_args()
        ))
        self.assertEqual([arg.kind for arg in definition.args], ["required", "optional", "remaining"])
        self.assertEqual(definition.default_data, {"target": None, "mode": "debug", "remaining": []})
        self.assertEqual(definition.required_args[0].display_name, "TARGET")

    def testRequiredAfterOptionalRejected(self):
        with self.assertRaises(DefinitionError):
            build(lambda tool: tool.optional_arg("mode").required_arg("target"))

    def testArgAfterRemainingRejected(self):
        with self.assertRaises(DefinitionError):
            build(lambda tool: tool.remaining_args("files").optional_arg("mode"))

    def testArgKeyCollidingWithFlagRejected(self):
        with self.assertRaises(ArgCollisionError):
            build(lambda tool: tool.flag("target", "--target=NAME").required_arg("target"))

    def testDuplicateArgKeyRejected(self):
        with self.assertRaises(ArgCollisionError):
            build(lambda tool: tool.required_arg("target").optional_arg("target"))


class TestLifecycle(TestCase):
    """Disabled parsing, finishing and source locking."""

    def testFlagAfterDisabledParsingRejected(self):
        with self.assertRaises(ParsingDisabledError):
            build(lambda tool: tool.disable_argument_parsing().flag("x", "-x"))

    def testDisablingAfterFlagsRejected(self):
        with self.assertRaises(ParsingDisabledError):
            build(lambda tool: tool.required_arg("x").disable_argument_parsing())

    def testFinishedDefinitionIsFrozen(self):
        definition = build(lambda tool: tool.desc("Before"))
        definition.finish_definition(definition.loader)
        self.assertTrue(definition.finished)
        with self.assertRaises(FinishedDefinitionError):
            definition.set_desc("After")

    def testSourcePathLocks(self):
        definition = build(lambda tool: tool.desc("x"))
        definition.lock_source_path("/one.py")
        definition.lock_source_path("/one.py")
        with self.assertRaises(DefinitionError):
            definition.lock_source_path("/two.py")
        self.assertEqual(definition.source_path, "/one.py")

    def testRunMarksRunnable(self):
        plain = build(lambda tool: tool.desc("Nothing to run"))
        runnable = build(lambda tool: tool.run(lambda context: None))
        self.assertFalse(plain.runnable)
        self.assertTrue(runnable.runnable)

    def testReadAccessIsDetached(self):
        definition = build(lambda tool: tool.long_desc("one", "two"))
        definition.long_desc.append("three")
        self.assertEqual(definition.long_desc, ["one", "two"])


class TestScoping(TestCase):
    """Acceptors, mixins and templates resolve through ancestors."""

    def testAcceptorFromAncestor(self):
        loader = Loader()

        def configure(tool):
            tool.acceptor("number", r"\d+", int)
            tool.tool("outer").tool("inner", lambda inner: inner.flag("count", "--count=N", accept="number"))

        loader.add_block(configure)
        definition, _ = loader.lookup(["outer", "inner"])
        self.assertEqual(definition.flags["count"].accept.name, "number")

    def testNearestAcceptorShadows(self):
        loader = Loader()

        def configure(tool):
            tool.acceptor("value", r"\d+", int)

            @tool.tool("child")
            def child(tool):
                tool.acceptor("value", ["a", "b"])
                tool.flag("pick", "--pick=V", accept="value")

        loader.add_block(configure)
        definition, _ = loader.lookup(["child"])
        self.assertEqual(definition.flags["pick"].accept.validate_and_convert("a"), "a")

    def testUnknownAcceptorNameRaises(self):
        with self.assertRaises(UnresolvedNameError):
            build(lambda tool: tool.flag("count", "--count=N", accept="number"))

    def testMixinResolvedByName(self):
        loader = Loader()

        def configure(tool):
            tool.mixin("greeter", greet=lambda context: "hello")
            tool.tool("hello", lambda hello: hello.include("greeter"))

        loader.add_block(configure)
        definition, _ = loader.lookup(["hello"])
        self.assertEqual(list(definition.mixins), ["greeter"])

    def testUnknownMixinRaises(self):
        with self.assertRaises(UnresolvedNameError):
            build(lambda tool: tool.include("missing"))

    def testTemplateExpandsDirectives(self):
        class Clean(Template):
            def __init__(self, name="clean"):
                self.name = name

            def expand(self, tool):
                tool.tool(self.name, lambda clean: clean.desc("Remove build output"))

        loader = Loader()
        loader.add_block(lambda tool: tool.template("clean", Clean).expand("clean", name="purge"))
        definition, _ = loader.lookup(["purge"])
        self.assertEqual(definition.desc, "Remove build output")

    def testUnknownTemplateRaises(self):
        with self.assertRaises(UnresolvedNameError):
            build(lambda tool: tool.expand("missing"))


if __name__ == "__main__":
    unittest.main()
