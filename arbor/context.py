"""
Arbor execution context: what middleware and a tool's run behavior receive.

The context is a mutable mapping of the matched flag and argument values, plus
a handful of attributes describing the invocation. Members of every mixin the
tool includes are merged in and reachable as attributes; mixin functions are
bound to the context, so they receive it as their first argument.
"""
import logging
import types
from collections.abc import MutableMapping

from .faults import ToolExit


class Context(MutableMapping):
    """
    Execution context of one tool invocation.

    Attributes
    - tool: the resolved Definition.
    - loader: the Loader that resolved it.
    - tool_name: the tool's full name (tuple of words).
    - args: the arguments matched against the tool (after the tool name words).
    - binary_name: the executable name used in help and error output.
    - cli: the CLI driving the invocation (None when built by hand).
    - usage_error: the first argument error, or None.
    - errors: every argument error, in order.
    - verbosity: integer verbosity level (0 by default).
    - logger: the logger tools should write to.
    """

    def __init__(
            self,
            tool,
            loader,
            /,
            data=(),
            *,
            args=(),
            binary_name="arbor",
            cli=None,
            errors=(),
            verbosity=0,
            logger=None,
    ):
        self.tool = tool
        self.loader = loader
        self.tool_name = tool.full_name
        self.args = list(args)
        self.binary_name = binary_name
        self.cli = cli
        self.errors = list(errors)
        self.verbosity = verbosity
        self.logger = logger or logging.getLogger("arbor")
        self._data = dict(data)
        self._members = {}
        for mixin in tool.mixins.values():
            for name, member in mixin.members.items():
                if isinstance(member, types.FunctionType):
                    member = types.MethodType(member, self)
                self._members[name] = member

    def __repr__(self):
        return f"Context({' '.join(self.tool_name)!r}, {self._data!r})"

    @property
    def usage_error(self):
        return self.errors[0] if self.errors else None

    def __getattr__(self, name):
        members = self.__dict__.get("_members", {})
        try:
            return members[name]
        except KeyError:
            raise AttributeError("%r object has no attribute %r" % (type(self).__name__, name)) from None

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._data[key] = value

    def __delitem__(self, key):
        del self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def exit(self, code=0, /):
        """Stop the tool and the rest of the middleware chain with the given exit status."""
        raise ToolExit(code)


__all__ = (
    "Context",
)
