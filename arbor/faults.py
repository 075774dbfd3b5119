"""
Arbor faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every fault. Codes are
  grouped by domain so logs and searches stay predictable.
- ToolException: base type that carries message + options and knows how to
  render itself through rich in a short, actionable way.
- Taxonomy
  • DefinitionError: configuration bugs detected while a source is loaded.
  • ResolutionError: problems detected while a tool name is looked up.
  • ArgParsingError: user mistakes detected while argv is matched.
  • ToolNotFoundError: a help target that does not name a tool.
  • NoImplementationError: a tool invoked without run behavior.
- ToolExit: control-flow exception carrying a process exit status.
- report(): render a fault to a console (stderr by default).

Propagation
- Definition and resolution errors abort the load or lookup that raised them.
- Argument errors are user-facing: the CLI reports them with a usage synopsis
  and exits with a non-zero status instead of showing a traceback.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across arbor (stable identifiers).

    grouping (by high-level domain)
    - arguments (11xxx): raised while matching argv against a definition.
    - definitions (13xxx): raised while configuration sources are loaded.
    - resolution (14xxx): raised while tool names are looked up.
    - invocation (15xxx): raised while a resolved tool is dispatched.

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- argument errors (11xxx) ---
    UNKNOWN_FLAG                = 11112
    AMBIGUOUS_FLAG              = 11113
    FLAG_VALUE_REQUIRED         = 11117
    FLAG_ASSIGNMENT             = 11118
    UNACCEPTABLE_VALUE          = 11124
    MISSING_ARGUMENT            = 11125
    EXCESS_ARGUMENTS            = 11141

    # --- definition errors (13xxx) ---
    ILLEGAL_ACCEPTOR            = 13101
    FLAG_COLLISION              = 13102
    ARG_COLLISION               = 13103
    PARSING_DISABLED            = 13104
    UNRESOLVED_NAME             = 13105
    ILLEGAL_ALIAS               = 13106
    FINISHED_DEFINITION         = 13107
    BAD_SOURCE                  = 13108

    # --- resolution errors (14xxx) ---
    ALIAS_CYCLE                 = 14101

    # --- invocation errors (15xxx) ---
    UNKNOWN_TOOL                = 15101
    NO_IMPLEMENTATION           = 15102

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


class ToolException(Exception):
    """
    Base class of every arbor fault.

    The message is the first positional argument; everything else is kept in a
    read-only options mapping (code, title, hint, and identity fields such as
    flag, argument, input or index).
    """
    __faultcode__ = Unset
    __title__ = "tool error"

    def __init__(self, message, /, **options):
        assert isinstance(message, str)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code", coalesce(type(self).__faultcode__))

    @property
    def title(self):
        return self.options.get("title", type(self).__title__)

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
            "docs": "#737373",
        } | getattr(main, "__styles__", {}))

        prog = getattr(main, "__prog__", self.options.get("binary_name", "arbor"))

        header = Text.assemble("[ ", (str(prog), styles["prog-name"]))
        if self.code is not None:
            header.append(" — ").append(self.code.normalize(), styles["code"])
        header.append(" | ").append(self.title.title(), styles["error-title"]).append(" ]")

        renders = [header, Text(self.message, styles["error-message"])]
        if self.hint:
            renders.append(Text.assemble((" → ", styles["hint-arrow"]), (self.hint, styles["hint"])))
        if self.code is not None and (docs := getdoc(self.code)):
            renders.append(Text(docs, styles["docs"]))
        return Group(*renders)

    def replace(self, **overrides):
        """
        Return a copy of this fault with some options (or the message) replaced.
        """
        message = overrides.pop("message", self.message)
        return type(self)(message, **{**self.options, **overrides})

    __replace__ = replace


class DefinitionError(ToolException):
    __title__ = "bad tool definition"

class IllegalAcceptorError(DefinitionError):
    __faultcode__ = FaultCode.ILLEGAL_ACCEPTOR

class FlagCollisionError(DefinitionError):
    __faultcode__ = FaultCode.FLAG_COLLISION

class ArgCollisionError(DefinitionError):
    __faultcode__ = FaultCode.ARG_COLLISION

class ParsingDisabledError(DefinitionError):
    __faultcode__ = FaultCode.PARSING_DISABLED

class UnresolvedNameError(DefinitionError):
    __faultcode__ = FaultCode.UNRESOLVED_NAME

class AliasError(DefinitionError):
    __faultcode__ = FaultCode.ILLEGAL_ALIAS

class FinishedDefinitionError(DefinitionError):
    __faultcode__ = FaultCode.FINISHED_DEFINITION

class SourceError(DefinitionError):
    __faultcode__ = FaultCode.BAD_SOURCE


class ResolutionError(ToolException):
    __title__ = "bad tool name"

class AliasCycleError(DefinitionError, ResolutionError):
    __faultcode__ = FaultCode.ALIAS_CYCLE
    __title__ = "alias cycle"


class ArgParsingError(ToolException):
    __title__ = "bad usage"

class UnknownFlagError(ArgParsingError):
    __faultcode__ = FaultCode.UNKNOWN_FLAG
    __title__ = "unknown flag"

class AmbiguousFlagError(ArgParsingError):
    __faultcode__ = FaultCode.AMBIGUOUS_FLAG
    __title__ = "ambiguous flag"

class FlagValueRequiredError(ArgParsingError):
    __faultcode__ = FaultCode.FLAG_VALUE_REQUIRED
    __title__ = "missing flag value"

class FlagAssignmentError(ArgParsingError):
    __faultcode__ = FaultCode.FLAG_ASSIGNMENT
    __title__ = "flag cannot take a value"

class MissingArgumentError(ArgParsingError):
    __faultcode__ = FaultCode.MISSING_ARGUMENT
    __title__ = "missing argument"

class ExcessArgumentsError(ArgParsingError):
    __faultcode__ = FaultCode.EXCESS_ARGUMENTS
    __title__ = "extra arguments"

class AcceptanceError(ArgParsingError):
    __faultcode__ = FaultCode.UNACCEPTABLE_VALUE
    __title__ = "unacceptable value"


class ToolNotFoundError(ToolException):
    __faultcode__ = FaultCode.UNKNOWN_TOOL
    __title__ = "tool not found"

class NoImplementationError(ToolException):
    __faultcode__ = FaultCode.NO_IMPLEMENTATION
    __title__ = "no implementation"


class ToolExit(Exception):
    """
    Raised to stop a tool (and the rest of the middleware chain) with an exit status.
    """

    def __init__(self, code=0, /):
        super().__init__(code)
        self.code = code


def report(fault, /, *, console=console, **options):
    """
    render a fault to the given console (stderr by default).

    options are merged into the fault via replace() before rendering, so callers
    can attach context such as binary_name or a better hint.
    """
    if not isinstance(fault, ToolException):
        raise TypeError("report() argument must be a tool exception")
    console.print(fault.replace(**options) if options else fault)


__all__ = (
    "FaultCode",
    "ToolException",
    "DefinitionError",
    "IllegalAcceptorError",
    "FlagCollisionError",
    "ArgCollisionError",
    "ParsingDisabledError",
    "UnresolvedNameError",
    "AliasError",
    "FinishedDefinitionError",
    "SourceError",
    "ResolutionError",
    "AliasCycleError",
    "ArgParsingError",
    "UnknownFlagError",
    "AmbiguousFlagError",
    "FlagValueRequiredError",
    "FlagAssignmentError",
    "MissingArgumentError",
    "ExcessArgumentsError",
    "AcceptanceError",
    "ToolNotFoundError",
    "NoImplementationError",
    "ToolExit",
    "getdoc",
    "report",
)
