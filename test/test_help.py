# python
"""
Help formatter behavioral tests.

Scope
- Validate usage synopses (flags, positional labels, subtool line, disabled parsing).
- Validate help sections and the subtool listing: immediate vs recursive, search
  with ancestors kept, aliases, hidden tools.
- Validate wrapping to the requested width and the optional SOURCE section.
- Validate show(): direct output, pager use on interactive streams and fallback.

Conventions
- Test method names follow CamelCase per project convention.
- Output is compared as plain text (help_string / usage_string, styled_output=False).
"""

from __future__ import annotations

import io
import os
import unittest
from unittest import TestCase, mock

from arbor import HelpText, Loader, render, show


def tree():
    loader = Loader()

    def configure(tool):
        tool.desc("Project tasks")

        @tool.tool("build")
        def build(tool):
            tool.desc("Compile the project")
            tool.flag("release", "-r", "--release", desc="Build with optimizations")
            tool.required_arg("target", desc="What to build")
            tool.optional_arg("mode")

        tool.tool("build-all", lambda build_all: build_all.desc("Compile every target"))
        tool.tool("check", lambda check: check.desc("Run the checks"))
        tool.tool("_internal", lambda internal: internal.desc("Not listed"))
        tool.alias_tool("b", "build")

        @tool.tool("ci")
        def ci(tool):
            tool.tool("deploy", lambda deploy: deploy.desc("Ship the builds"))
            tool.tool("lint", lambda lint: lint.desc("Static analysis"))

    loader.add_block(configure, name="tasks.py")
    return loader


def help_for(loader, *words):
    definition, _ = loader.lookup(list(words))
    return HelpText(definition, loader, "arbor")


class TestUsage(TestCase):
    """Synopsis lines."""

    def testFlagsAndArgs(self):
        usage = help_for(tree(), "build").usage_string(wrap_width=80)
        self.assertEqual(usage, "Usage:  arbor build [-r | --release] TARGET [MODE]\n")

    def testNamespaceHasToolLine(self):
        lines = help_for(tree()).usage_string(wrap_width=80).splitlines()
        self.assertEqual(lines[0], "Usage:  arbor")
        self.assertEqual(lines[1].strip(), "arbor TOOL [ARGUMENTS...]")

    def testDisabledParsing(self):
        loader = Loader()
        loader.add_block(lambda tool: tool.tool("raw", lambda raw: raw.disable_argument_parsing()))
        usage = help_for(loader, "raw").usage_string(wrap_width=80)
        self.assertEqual(usage, "Usage:  arbor raw [ARGUMENTS...]\n")

    def testRemainingLabel(self):
        loader = Loader()
        loader.add_block(lambda tool: tool.tool("exec", lambda run: run.remaining_args("files")))
        self.assertIn("[FILES...]", help_for(loader, "exec").usage_string(wrap_width=80))


class TestHelp(TestCase):
    """Sections and subtool listings."""

    def testSections(self):
        text = help_for(tree(), "build").help_string(wrap_width=80)
        for section in ("NAME", "SYNOPSIS", "FLAGS", "POSITIONAL ARGUMENTS"):
            self.assertIn(section + "\n", text)
        self.assertIn("arbor build - Compile the project", text)
        self.assertIn("-r, --release", text)
        self.assertIn("Build with optimizations", text)
        self.assertNotIn("TOOLS", text)
        self.assertNotIn("SOURCE", text)

    def testImmediateSubtools(self):
        text = help_for(tree()).help_string(wrap_width=80)
        self.assertIn("    build - Compile the project", text)
        self.assertIn("    b - (alias of build)", text)
        self.assertIn("    ci", text)
        self.assertNotIn("deploy", text)
        self.assertNotIn("_internal", text)

    def testRecursiveSubtools(self):
        text = help_for(tree()).help_string(recursive=True, wrap_width=80)
        self.assertIn("    ci deploy - Ship the builds", text)
        self.assertIn("    ci lint - Static analysis", text)

    def testSearchKeepsMatchesAndAncestors(self):
        text = help_for(tree()).help_string(search="bui", recursive=True, wrap_width=80)
        tools = text.split("TOOLS\n", 1)[1]
        self.assertIn("build - Compile the project", tools)
        self.assertIn("build-all - Compile every target", tools)
        self.assertIn("ci deploy - Ship the builds", tools)
        self.assertIn("    ci\n", tools)
        self.assertNotIn("check", tools)
        self.assertNotIn("lint", tools)

    def testSearchIsCaseInsensitive(self):
        text = help_for(tree()).help_string(search="CHECK", wrap_width=80)
        self.assertIn("check - Run the checks", text)

    def testInvalidPatternSearchedLiterally(self):
        text = help_for(tree()).help_string(search="build(", wrap_width=80)
        self.assertNotIn("TOOLS", text)

    def testSourcePath(self):
        text = help_for(tree(), "build").help_string(show_source_path=True, wrap_width=80)
        self.assertIn("SOURCE\n    tasks.py", text)

    def testWrapWidth(self):
        loader = Loader()

        def configure(tool):
            @tool.tool("long")
            def long(tool):
                tool.desc("A description that is much too long to fit on a single narrow line")
                tool.long_desc("Another paragraph that also needs to be wrapped over several lines of output")
                tool.flag("one", "--one", desc="first flag with a fairly long description attached")
                tool.flag("two", "--two")
                tool.flag("three", "--three")
                tool.required_arg("alpha")
                tool.required_arg("beta")

        loader.add_block(configure)
        text = help_for(loader, "long").help_string(wrap_width=40)
        self.assertTrue(all(len(line) <= 40 for line in text.splitlines()), text)
        self.assertIn("DESCRIPTION", text)

    def testRenderMatchesHelpString(self):
        loader = tree()
        definition, _ = loader.lookup(["check"])
        self.assertEqual(
            render(definition, loader, "arbor", wrap_width=80),
            HelpText(definition, loader, "arbor").help_string(wrap_width=80),
        )


class Terminal(io.StringIO):
    def isatty(self):
        return True


class TestShow(TestCase):
    """Output destinations."""

    def testWritesToStream(self):
        stream = io.StringIO()
        show("hello [world]", stream, styled_output=False)
        self.assertEqual(stream.getvalue(), "hello [world]\n")

    @mock.patch.dict(os.environ, {"PAGER": "less -R"})
    @mock.patch("arbor.help.shutil.which", return_value="/usr/bin/less")
    @mock.patch("arbor.help.subprocess.run")
    def testPagerOnTerminal(self, run, which):
        stream = Terminal()
        show("paged", stream, styled_output=False, use_pager=True)
        which.assert_called_once_with("less")
        self.assertEqual(run.call_args.args[0], ["/usr/bin/less", "-R"])
        self.assertIn("paged", run.call_args.kwargs["input"])
        self.assertEqual(stream.getvalue(), "")

    @mock.patch("arbor.help.subprocess.run")
    def testNoPagerOffTerminal(self, run):
        stream = io.StringIO()
        show("direct", stream, styled_output=False, use_pager=True)
        run.assert_not_called()
        self.assertEqual(stream.getvalue(), "direct\n")

    @mock.patch.dict(os.environ, {"PAGER": "less -R"})
    @mock.patch("arbor.help.shutil.which", return_value="/usr/bin/less")
    @mock.patch("arbor.help.subprocess.run", side_effect=OSError("broken pipe"))
    def testPagerFailureFallsBack(self, run, which):
        stream = Terminal()
        show("fallback", stream, styled_output=False, use_pager=True)
        self.assertEqual(stream.getvalue(), "fallback\n")

    @mock.patch("arbor.help.shutil.which", return_value=None)
    def testMissingPagerWritesDirectly(self, which):
        stream = Terminal()
        show("plain", stream, styled_output=False, use_pager=True)
        self.assertEqual(stream.getvalue(), "plain\n")


if __name__ == "__main__":
    unittest.main()
