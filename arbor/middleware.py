"""
Arbor middleware: cross-cutting behavior wrapped around every tool.

Each middleware contributes two hooks:
- config(definition, loader, next): runs once, before the tool executes, and may
  add flags or arguments to the definition. Call next() to continue with the rest
  of the stack; not calling it stops the remaining configuration.
- execute(context, next): wraps execution. Call next() to continue toward the
  tool's own behavior, or return without calling it to short-circuit.

The first middleware in a stack is the outermost one for both hooks.

Standard middleware
- ShowHelp ("show_help"): help, usage, recursive and search flags, and help display.
- SetDefaultDescriptions ("set_default_descriptions"): fills in missing tool descriptions.
- ShowRootVersion ("show_root_version"): --version on the root tool.
- AddVerbosityFlags ("add_verbosity_flags"): -v/--verbose and -q/--quiet.

Middleware specs (see resolve)
- an instance, a Middleware subclass, a standard name, or a tuple
  (spec, kwargs) / (spec, args, kwargs) used to construct one.
"""
import logging

from .faults import DefinitionError, ToolNotFoundError, report
from .help import HelpText, console_for, show

logger = logging.getLogger(__name__)

DEFAULT_HELP_FLAGS = ("-?", "--help")
DEFAULT_USAGE_FLAGS = ("--usage",)
DEFAULT_RECURSIVE_FLAGS = ("-r", "--[no-]recursive")
DEFAULT_SEARCH_FLAGS = ("-s WORD", "--search=WORD")
DEFAULT_VERSION_FLAGS = ("--version",)
DEFAULT_VERBOSE_FLAGS = ("-v", "--verbose")
DEFAULT_QUIET_FLAGS = ("-q", "--quiet")

SHOW_HELP_KEY = "_show_help"
SHOW_USAGE_KEY = "_show_usage"
RECURSIVE_SUBTOOLS_KEY = "_recursive_subtools"
SEARCH_SUBTOOLS_KEY = "_search_subtools"
TOOL_NAME_KEY = "_tool_name"
SHOW_VERSION_KEY = "_show_version"
VERBOSE_COUNT_KEY = "_verbose_count"
QUIET_COUNT_KEY = "_quiet_count"


class Middleware:
    """Base middleware: both hooks just continue."""

    def config(self, definition, loader, next):
        return next()

    def execute(self, context, next):
        return next()

    def __repr__(self):
        return f"{type(self).__name__}()"


def configure(stack, definition, loader, /):
    """Run the config hooks of stack against definition, outermost first."""

    def step(index):
        if index < len(stack):
            logger.debug("configuring %r with %r", definition, stack[index])
            stack[index].config(definition, loader, lambda: step(index + 1))

    step(0)


def execute(stack, context, run, /):
    """
    Run the execute hooks of stack around run(context); returns what the chain returns.
    """

    def step(index):
        if index < len(stack):
            return stack[index].execute(context, lambda: step(index + 1))
        return run(context)

    return step(0)


def resolve_flags_spec(value, definition, defaults, /):
    """
    Turn a flags option into a list of switch strings.

    True means the defaults, False or None means no flags, a callable is called
    with the definition, a string is a single switch and any other iterable is
    taken as-is.
    """
    match value:
        case True:
            return list(defaults)
        case False | None:
            return []
        case str():
            return [value]
    if callable(value):
        return resolve_flags_spec(value(definition), definition, defaults)
    return list(value)


def _add_flag(definition, spec, defaults, key, desc, /, **options):
    if not (switches := resolve_flags_spec(spec, definition, defaults)):
        return []
    if not definition.argument_parsing_disabled:
        definition.add_flag(key, switches, desc=desc, only_unique=True, **options)
    return switches


class ShowHelp(Middleware):
    """
    Help and usage display.

    Configuration
    - help_flags / usage_flags: flag specs for full help and for the usage line
      (see resolve_flags_spec); both are off by default.
    - recursive_flags / search_flags: added to tools with subtools, when help flags
      are configured or fallback_execution is on.
    - default_recursive: whether the subtool listing is recursive by default.
    - fallback_execution: show help instead of running a tool with no behavior.
    - allow_root_args: let the root tool take the name of the tool to describe.
    - show_source_path: include where the tool was defined.
    - use_pager, stream, styled_output: output destination and presentation.
    """

    def __init__(
            self,
            help_flags=False,
            usage_flags=False,
            recursive_flags=True,
            search_flags=True,
            default_recursive=False,
            fallback_execution=False,
            allow_root_args=False,
            show_source_path=False,
            use_pager=False,
            stream=None,
            styled_output=None,
    ):
        self.help_flags = help_flags
        self.usage_flags = usage_flags
        self.recursive_flags = recursive_flags
        self.search_flags = search_flags
        self.default_recursive = bool(default_recursive)
        self.fallback_execution = fallback_execution
        self.allow_root_args = allow_root_args
        self.show_source_path = show_source_path
        self.use_pager = use_pager
        self.stream = stream
        self.styled_output = styled_output

    def config(self, definition, loader, next):
        help_flags = _add_flag(
            definition, self.help_flags, DEFAULT_HELP_FLAGS, SHOW_HELP_KEY, "Display help for this tool",
        )
        usage_flags = _add_flag(
            definition, self.usage_flags, DEFAULT_USAGE_FLAGS, SHOW_USAGE_KEY,
            "Display a brief usage string for this tool",
        )
        if self.allow_root_args and (help_flags or usage_flags):
            if definition.root and not definition.args and not definition.argument_parsing_disabled:
                definition.set_remaining_args(
                    TOOL_NAME_KEY, display_name="TOOL_NAME", desc="The tool for which to display help",
                )
        if (help_flags or self.fallback_execution) and loader.has_subtools(definition.full_name):
            _add_flag(
                definition, self.recursive_flags, DEFAULT_RECURSIVE_FLAGS, RECURSIVE_SUBTOOLS_KEY,
                "Show all subtools recursively (default is %s)" % str(self.default_recursive).lower(),
                default=self.default_recursive,
            )
            _add_flag(
                definition, self.search_flags, DEFAULT_SEARCH_FLAGS, SEARCH_SUBTOOLS_KEY,
                "Search subtools for the given regular expression",
            )
        return next()

    def execute(self, context, next):
        if context.get(SHOW_USAGE_KEY):
            help_text = self._help_text(context)
            show(help_text.usage_text(wrap_width=self._columns()), self.stream, styled_output=self.styled_output)
        elif (self.fallback_execution and not context.tool.runnable) or context.get(SHOW_HELP_KEY):
            recursive = context.get(RECURSIVE_SUBTOOLS_KEY)
            text = self._help_text(context).help_text(
                recursive=self.default_recursive if recursive is None else recursive,
                search=context.get(SEARCH_SUBTOOLS_KEY),
                show_source_path=self.show_source_path,
                wrap_width=self._columns(),
            )
            show(text, self.stream, styled_output=self.styled_output, use_pager=self.use_pager)
        else:
            return next()

    def _columns(self):
        return console_for(self.stream, self.styled_output).width

    def _help_text(self, context):
        if not (tool_name := context.get(TOOL_NAME_KEY)):
            return HelpText(context.tool, context.loader, context.binary_name)

        tool, remaining = context.loader.lookup(tool_name)
        help_text = HelpText(tool, context.loader, context.binary_name)
        if remaining:
            report(
                ToolNotFoundError("Tool not found: %s" % " ".join(tool_name), tool_name=list(tool_name)),
                console=console_for(self.stream, self.styled_output),
                binary_name=context.binary_name,
                hint="run '%s --help' to list the available tools" % context.binary_name,
            )
            show(help_text.usage_text(wrap_width=self._columns()), self.stream, styled_output=self.styled_output)
            context.exit(1)
        tool.finish_definition(context.loader)
        return help_text


class SetDefaultDescriptions(Middleware):
    """
    Give every tool a short description when its configuration did not set one.
    """

    def __init__(
            self,
            default_tool_desc="(No tool description available)",
            default_namespace_desc="(A namespace of tools)",
            default_root_desc="Command line tools",
    ):
        self.default_tool_desc = default_tool_desc
        self.default_namespace_desc = default_namespace_desc
        self.default_root_desc = default_root_desc

    def config(self, definition, loader, next):
        if not definition.desc:
            if definition.root:
                definition.set_desc(self.default_root_desc)
            elif not definition.runnable and loader.has_subtools(definition.full_name):
                definition.set_desc(self.default_namespace_desc)
            else:
                definition.set_desc(self.default_tool_desc)
        return next()


class ShowRootVersion(Middleware):
    """
    Add version flags to the root tool and print version_string when one is given.
    """

    def __init__(self, version_string=None, version_flags=DEFAULT_VERSION_FLAGS, stream=None, styled_output=None):
        self.version_string = version_string
        self.version_flags = version_flags
        self.stream = stream
        self.styled_output = styled_output

    def config(self, definition, loader, next):
        if self.version_string and definition.root:
            _add_flag(definition, self.version_flags, DEFAULT_VERSION_FLAGS, SHOW_VERSION_KEY, "Display the version")
        return next()

    def execute(self, context, next):
        if context.get(SHOW_VERSION_KEY):
            show(self.version_string, self.stream, styled_output=self.styled_output)
        else:
            return next()


def _increment(value, previous):
    return (previous or 0) + 1


class AddVerbosityFlags(Middleware):
    """
    Add -v/--verbose and -q/--quiet; each occurrence moves the verbosity one step.

    The resulting level is stored on context.verbosity and applied to the context
    logger, starting from WARNING.
    """

    def __init__(self, verbose_flags=True, quiet_flags=True):
        self.verbose_flags = verbose_flags
        self.quiet_flags = quiet_flags

    def config(self, definition, loader, next):
        _add_flag(
            definition, self.verbose_flags, DEFAULT_VERBOSE_FLAGS, VERBOSE_COUNT_KEY, "Increase verbosity",
            default=0, handler=_increment,
        )
        _add_flag(
            definition, self.quiet_flags, DEFAULT_QUIET_FLAGS, QUIET_COUNT_KEY, "Decrease verbosity",
            default=0, handler=_increment,
        )
        return next()

    def execute(self, context, next):
        context.verbosity += context.get(VERBOSE_COUNT_KEY, 0) - context.get(QUIET_COUNT_KEY, 0)
        context.logger.setLevel(min(max(logging.WARNING - 10 * context.verbosity, logging.DEBUG), logging.CRITICAL))
        return next()


STANDARD = {
    "show_help": ShowHelp,
    "set_default_descriptions": SetDefaultDescriptions,
    "show_root_version": ShowRootVersion,
    "add_verbosity_flags": AddVerbosityFlags,
}


def _construct(target, args, kwargs):
    if isinstance(target, str):
        try:
            target = STANDARD[target]
        except KeyError:
            raise DefinitionError("unknown middleware %r" % target) from None
    if not isinstance(target, type):
        raise DefinitionError("cannot construct middleware from %r" % (target,))
    return target(*args, **kwargs)


def resolve(spec, /):
    """
    Turn a middleware spec into a middleware instance.
    """
    match spec:
        case Middleware():
            return spec
        case type() if issubclass(spec, Middleware):
            return spec()
        case str():
            return _construct(spec, (), {})
        case (target, dict() as kwargs):
            return _construct(target, (), kwargs)
        case (target, list() | tuple() as args, dict() as kwargs):
            return _construct(target, args, kwargs)
    if callable(getattr(spec, "config", None)) and callable(getattr(spec, "execute", None)):
        return spec
    raise DefinitionError("illegal middleware spec %r" % (spec,))


def resolve_stack(specs, /):
    return [resolve(spec) for spec in specs]


__all__ = (
    "Middleware",
    "ShowHelp",
    "SetDefaultDescriptions",
    "ShowRootVersion",
    "AddVerbosityFlags",
    "configure",
    "execute",
    "resolve",
    "resolve_stack",
    "resolve_flags_spec",
    "STANDARD",
    "DEFAULT_HELP_FLAGS",
    "DEFAULT_USAGE_FLAGS",
    "DEFAULT_RECURSIVE_FLAGS",
    "DEFAULT_SEARCH_FLAGS",
)
