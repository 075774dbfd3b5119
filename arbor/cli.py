"""
Arbor CLI driver.

A CLI owns one loader and one middleware stack. run(*args) resolves the tool
named by the leading words of args, finishes its definition (middleware config
hooks), matches the rest of args, and executes the middleware chain around the
tool's run behavior. The return value is the process exit status:

- 0: the tool (or a middleware) completed.
- 1: a help target named on the command line does not exist.
- 2: the arguments did not match the tool (reported with a usage synopsis).
- 126: the tool has no run behavior.
- any status passed to context.exit().

Definition and resolution errors, and exceptions raised by a tool's run
behavior, propagate to the caller.
"""
import logging
import os
import sys
from pathlib import Path

from . import middleware
from .context import Context
from .faults import NoImplementationError, ToolExit, report
from .help import HelpText, console_for, show
from .loader import Loader
from .matcher import ArgParser
from .utils import Unset, coalesce

logger = logging.getLogger(__name__)

USAGE_ERROR_STATUS = 2
NO_IMPLEMENTATION_STATUS = 126


def default_middleware_stack(stream=None, styled_output=None):
    """The standard stack: default descriptions, help with fallback, verbosity flags."""
    return [
        "set_default_descriptions",
        ("show_help", {
            "help_flags": True,
            "usage_flags": True,
            "fallback_execution": True,
            "allow_root_args": True,
            "stream": stream,
            "styled_output": styled_output,
        }),
        "add_verbosity_flags",
    ]


class CLI:
    """
    Command line driver.

    Parameters
    - binary_name: name shown in help and errors (default: basename of sys.argv[0]).
    - middleware_stack: middleware specs (default: default_middleware_stack()).
    - index_file_name: file configuring a directory's own namespace.
    - stream / styled_output: where help goes and whether it is styled.
    - logger_name: logger handed to tools through the context.
    """

    def __init__(
            self,
            binary_name=Unset,
            *,
            middleware_stack=Unset,
            index_file_name=".arbor.py",
            stream=None,
            styled_output=None,
            logger_name="arbor",
    ):
        self._binary_name = coalesce(binary_name, os.path.basename(sys.argv[0]) or "arbor")
        self._styled_output = styled_output
        self._logger = logging.getLogger(logger_name)
        self._middleware_stack = middleware.resolve_stack(
            coalesce(middleware_stack, default_middleware_stack(stream, styled_output))
        )
        self._loader = Loader(index_file_name=index_file_name, middleware_stack=self._middleware_stack)

    def __repr__(self):
        return f"CLI({self._binary_name!r})"

    @property
    def binary_name(self):
        return self._binary_name

    @property
    def loader(self):
        return self._loader

    @property
    def logger(self):
        return self._logger

    # ── Sources ─────────────────────────────────────────────────────────────

    def add_config_path(self, path, /, high_priority=False):
        self._loader.add_path(path, high_priority=high_priority)
        return self

    def add_config_block(self, configure, /, name=Unset, high_priority=False):
        self._loader.add_block(configure, name=name, high_priority=high_priority)
        return self

    def add_config_modules(self, pattern, /, high_priority=False):
        self._loader.add_modules(pattern, high_priority=high_priority)
        return self

    def add_search_path(self, directory, /, high_priority=False):
        """
        Register the index file and the index directory found in directory, when present.
        """
        directory = Path(directory)
        index = self._loader.index_file_name
        for candidate in (directory / index, directory / Path(index).stem):
            if candidate.exists():
                self._loader.add_path(candidate, high_priority=high_priority)
        return self

    def add_search_path_hierarchy(self, start=Unset, /, high_priority=False):
        """
        Register search paths from start (default: the working directory) up to the
        filesystem root; nearer directories get higher priority.
        """
        start = Path(coalesce(start, os.getcwd())).resolve()
        directories = [start, *start.parents]
        for directory in reversed(directories) if high_priority else directories:
            self.add_search_path(directory, high_priority=high_priority)
        return self

    # ── Running ─────────────────────────────────────────────────────────────

    def run(self, *args):
        """
        Run the tool named by args and return the exit status.
        """
        tool, remaining = self._loader.lookup(args)
        logger.debug("running %r with %r", tool, remaining)
        tool.finish_definition(self._loader)

        parser = ArgParser(tool).parse(remaining)
        context = Context(
            tool,
            self._loader,
            parser.data,
            args=remaining,
            binary_name=self._binary_name,
            cli=self,
            errors=parser.errors,
            logger=self._logger,
        )
        try:
            middleware.execute(tool.middleware_stack, context, self._execute)
        except ToolExit as signal:
            return signal.code
        return 0

    def _execute(self, context):
        tool = context.tool
        if (error := context.usage_error) is not None:
            report(error, binary_name=self._binary_name)
            show(
                HelpText(tool, self._loader, self._binary_name).usage_text(wrap_width=console_for(sys.stderr).width),
                sys.stderr,
                styled_output=self._styled_output,
            )
            context.exit(USAGE_ERROR_STATUS)
        if not tool.runnable:
            report(
                NoImplementationError("no implementation for tool %r" % (tool.display_name or self._binary_name)),
                binary_name=self._binary_name,
                hint="run '%s --help' to see what it contains" % " ".join(filter(None, [self._binary_name, tool.display_name])),
            )
            context.exit(NO_IMPLEMENTATION_STATUS)
        tool.run(context)


__all__ = (
    "CLI",
    "default_middleware_stack",
)
