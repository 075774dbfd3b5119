"""
Arbor help formatter.

HelpText renders one definition (and optionally its subtool tree) as rich Text:

    NAME          binary tool - short description
    SYNOPSIS      binary tool [FLAGS...] ARGS / binary tool TOOL [ARGUMENTS...]
    DESCRIPTION   the wrapped long description
    FLAGS         every flag syntax with its wrapped description
    POSITIONAL ARGUMENTS
    TOOLS         immediate subtools, or the whole subtree when recursive
    SOURCE        where the tool was defined (on request)

Searching keeps the subtools whose relative name or short description matches a
case-insensitive regular expression, plus the namespaces above each match.

show() writes rendered text to a stream, through a pager when the stream is an
interactive terminal and paging is enabled.

Customization
- Define a mapping named __styles__ in __main__ to override any palette entry:
  section-title, binary-name, tool-name, flag-name, metavar, description,
  subtool, alias, source, usage-label.
"""
import logging
import os
import re
import shlex
import shutil
import subprocess
import sys
from collections import defaultdict

from rich.console import Console
from rich.containers import Lines
from rich.text import Text

from . import definitions
from .utils import Unset, coalesce

logger = logging.getLogger(__name__)

INDENT = 4


def _styles():
    return defaultdict(str, {
        "section-title": "bold #FFFFFF",
        "binary-name": "bold #FF4D94",
        "tool-name": "bold #36C5F0",
        "flag-name": "bold #22C55E",
        "metavar": "bold #FFD600",
        "description": "#9CA3AF",
        "subtool": "bold #36C5F0",
        "alias": "italic #A3A3A3",
        "source": "#737373",
        "usage-label": "bold #00E6FF",
    } | getattr(__import__("__main__"), "__styles__", {}))


class HelpText:
    """
    Help and usage renderer for one definition.

    Parameters
    - definition: the tool to describe.
    - loader: used to list subtools.
    - binary_name: the executable name shown before the tool name.
    """

    def __init__(self, definition, loader, binary_name="arbor", /):
        self._definition = definition
        self._loader = loader
        self._binary_name = binary_name
        self._console = Console(highlight=False)
        self._styles = _styles()

    def __repr__(self):
        return f"HelpText({self._definition.display_name!r})"

    def _text(self, fragment, style=""):
        return Text(str(fragment), self._styles[style])

    def _width(self, wrap_width):
        return coalesce(wrap_width, None) or self._console.width

    def _wrap(self, fragment, indent, width):
        # hanging paragraph: every line starts at indent
        section = Text()
        for line in fragment.wrap(self._console, max(width - indent, 20)):
            section.append(" " * indent).append(line).append("\n")
        return section

    def _join(self, segments, indent, width):
        # greedy line filling with a hanging indent for continuation lines
        lines = Lines()
        for segment in segments:
            if lines and len(lines[-1]) + 1 + len(segment) <= width - indent:
                lines[-1].append(Text(" ") + segment)
            else:
                lines.append(segment.copy())
        section = Text()
        for index, line in enumerate(lines):
            section.append("\n" * (index > 0)).append(" " * (indent * (index > 0))).append(line)
        return section

    # ── Pieces ──────────────────────────────────────────────────────────────

    def _invocation(self):
        text = self._text(self._binary_name, "binary-name")
        if self._definition.full_name:
            text.append(" ").append(self._text(self._definition.display_name, "tool-name"))
        return text

    def _flag_syntaxes(self, flag):
        return [self._text(syntax.canonical, "flag-name") for syntax in flag.syntaxes]

    def _arg_label(self, arg):
        match arg.kind:
            case "required":
                return self._text(arg.display_name, "metavar")
            case "optional":
                return Text.assemble("[", self._text(arg.display_name, "metavar"), "]")
            case _:
                return Text.assemble("[", self._text(arg.display_name, "metavar"), "...]")

    def _synopses(self):
        definition = self._definition
        synopses = []
        if definition.argument_parsing_disabled:
            synopses.append([self._invocation(), Text("[ARGUMENTS...]")])
        else:
            segments = [self._invocation()]
            for flag in definition.flags.values():
                segments.append(Text.assemble("[", Text(" | ").join(self._flag_syntaxes(flag)), "]"))
            segments.extend(map(self._arg_label, definition.args))
            synopses.append(segments)
        if self._loader.has_subtools(definition.full_name):
            synopses.append([self._invocation(), self._text("TOOL", "metavar"), Text("[ARGUMENTS...]")])
        return synopses

    def _subtools(self, recursive, search):
        words = self._definition.full_name
        subtools = self._loader.list_subtools(words, recursive=recursive)
        if search is None:
            return subtools

        try:
            pattern = re.compile(search, re.IGNORECASE)
        except re.error:
            pattern = re.compile(re.escape(search), re.IGNORECASE)

        def matches(tool):
            name = " ".join(tool.full_name[len(words):])
            desc = "" if isinstance(tool, definitions.Alias) else tool.desc
            return pattern.search(name) or pattern.search(desc)

        kept = {tool.full_name for tool in subtools if matches(tool)}
        # keep every namespace above a match so the listing stays a tree
        for name in list(kept):
            kept.update(name[:size] for size in range(len(words) + 1, len(name)))
        return [tool for tool in subtools if tool.full_name in kept]

    def _section(self, title):
        return self._text(title, "section-title").append("\n")

    # ── Public ──────────────────────────────────────────────────────────────

    def usage_text(self, *, wrap_width=Unset):
        width = self._width(wrap_width)
        label = Text.assemble(("Usage:", self._styles["usage-label"]), "  ")
        text = Text()
        for index, segments in enumerate(self._synopses()):
            text.append(label if index == 0 else " " * len(label))
            text.append(self._join(segments, len(label) + INDENT, width)).append("\n")
        return text

    def help_text(self, *, recursive=False, search=None, show_source_path=False, wrap_width=Unset):
        width = self._width(wrap_width)
        definition = self._definition
        text = Text()

        text.append(self._section("NAME"))
        name = self._invocation()
        if definition.desc:
            name.append(" - ").append(self._text(definition.desc, "description"))
        text.append(self._wrap(name, INDENT, width)).append("\n")

        text.append(self._section("SYNOPSIS"))
        for segments in self._synopses():
            text.append(" " * INDENT).append(self._join(segments, INDENT * 2, width)).append("\n")

        if definition.long_desc:
            text.append("\n").append(self._section("DESCRIPTION"))
            for line in definition.long_desc:
                text.append(self._wrap(self._text(line, "description"), INDENT, width))

        if flags := definition.flags:
            text.append("\n").append(self._section("FLAGS"))
            for flag in flags.values():
                text.append(" " * INDENT).append(Text(", ").join(self._flag_syntaxes(flag))).append("\n")
                for line in filter(None, [flag.desc, *flag.long_desc]):
                    text.append(self._wrap(self._text(line, "description"), INDENT * 2, width))

        if args := definition.args:
            text.append("\n").append(self._section("POSITIONAL ARGUMENTS"))
            for arg in args:
                text.append(" " * INDENT).append(self._arg_label(arg)).append("\n")
                for line in filter(None, [arg.desc, *arg.long_desc]):
                    text.append(self._wrap(self._text(line, "description"), INDENT * 2, width))

        if subtools := self._subtools(recursive, search):
            text.append("\n").append(self._section("TOOLS"))
            for tool in subtools:
                entry = self._text(" ".join(tool.full_name[len(definition.full_name):]), "subtool")
                if isinstance(tool, definitions.Alias):
                    entry.append(" - ").append(self._text("(alias of %s)" % " ".join(tool.target_name), "alias"))
                elif tool.desc:
                    entry.append(" - ").append(self._text(tool.desc, "description"))
                text.append(self._wrap(entry, INDENT, width))

        if show_source_path and definition.source_path:
            text.append("\n").append(self._section("SOURCE"))
            text.append(self._wrap(self._text(definition.source_path, "source"), INDENT, width))

        text.rstrip()
        return text

    def usage_string(self, *, wrap_width=Unset):
        return self.usage_text(wrap_width=wrap_width).plain.rstrip() + "\n"

    def help_string(self, *, recursive=False, search=None, show_source_path=False, wrap_width=Unset):
        return self.help_text(
            recursive=recursive, search=search, show_source_path=show_source_path, wrap_width=wrap_width
        ).plain + "\n"


def render(definition, loader, /, binary_name="arbor", *, recursive=False, search=None, show_source_path=False,
           wrap_width=Unset):
    """
    Render full help for definition as a plain string.
    """
    return HelpText(definition, loader, binary_name).help_string(
        recursive=recursive, search=search, show_source_path=show_source_path, wrap_width=wrap_width
    )


def _interactive(stream):
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


def console_for(stream=None, /, styled_output=None):
    """
    Console writing to stream (stdout by default); styling follows the terminal unless forced.
    """
    stream = stream or sys.stdout
    styled = _interactive(stream) if styled_output is None else styled_output
    return Console(file=stream, force_terminal=styled, no_color=not styled, highlight=False, soft_wrap=True)


def show(text, /, stream=None, *, styled_output=None, use_pager=False):
    """
    Write rendered text to stream, piping it through a pager when that makes sense.

    The pager ($PAGER, else "less -R") is used only when paging is enabled, the
    stream is an interactive terminal and the program exists; a failure to run
    it falls back to writing directly.
    """
    stream = stream or sys.stdout
    console = console_for(stream, styled_output)
    if isinstance(text, str):
        text = Text(text)
    if use_pager and _interactive(stream):
        command = shlex.split(os.environ.get("PAGER") or "less -R")
        if command and (program := shutil.which(command[0])):
            with console.capture() as capture:
                console.print(text)
            try:
                subprocess.run([program, *command[1:]], input=capture.get(), text=True, check=False)
                return
            except OSError as exception:
                logger.debug("pager %s failed (%s), writing directly", program, exception)
    console.print(text)


__all__ = (
    "HelpText",
    "render",
    "show",
    "console_for",
)
