"""
Arbor tool definitions: the records the loader stores and the matcher reads.

What this module provides
- FlagSyntax: one declared switch spelling (e.g. "-s WORD", "--[no-]recursive").
- Flag: a keyed switch set with an acceptor, a default and an accumulation handler.
- Arg: a positional slot (required, optional or remaining).
- Mixin: a named bundle of members merged into the execution context.
- Alias: a redirect from one tool name to another.
- Definition: the mutable description of one tool.

Lifecycle of a Definition
- Created by the loader when a configuration source first touches a tool name.
- Mutated through directives (desc, flags, args, mixins, run...) while sources load;
  each directive validates against the current state before applying.
- Finished once before execution: the middleware configuration hooks run (they may
  add flags such as --help), then the definition refuses further changes.

Invariants
- No flags or args once argument parsing is disabled, and the other way around.
- Flag keys and arg keys are unique within a definition; switch strings are unique
  unless collision reporting was suppressed (then the newest flag wins).
- source_path is locked the first time a source touches the definition.
"""
import logging
import re

from . import acceptors
from .faults import (
    ArgCollisionError,
    DefinitionError,
    FinishedDefinitionError,
    FlagCollisionError,
    ParsingDisabledError,
    UnresolvedNameError,
)
from .middleware import configure
from .utils import Unset, coalesce, mirror

logger = logging.getLogger(__name__)

_SHORT_TOGGLE = re.compile(r"-([?\w])")
_LONG_TOGGLE = re.compile(r"--([?\w][?\w-]*)")
_LONG_NEGATABLE = re.compile(r"--\[no-\]([?\w][?\w-]*)")
_SHORT_OPTIONAL = re.compile(r"(-[?\w])( ?)\[(\w+)\]")
_SHORT_REQUIRED = re.compile(r"(-[?\w])( |(?=[A-Z]))(\w+)")
_LONG_OPTIONAL = re.compile(r"(--[?\w][?\w-]*)(\[=| \[)(\w+)\]")
_LONG_REQUIRED = re.compile(r"(--[?\w][?\w-]*)([= ])(\w+)")


class FlagSyntax:
    """
    One parsed switch spelling.

    Attributes
    - original: the string as declared.
    - switches: concrete switch strings it answers to ("--x" and "--no-x" for negatable).
    - style: "short" or "long".
    - value_type: None for toggles, else "required" or "optional".
    - value_delim / value_label: how the value is written in help ("=" / " " / "").
    - negatable: True for "--[no-]x".
    """

    def __init__(self, original, /):
        if not isinstance(original, str):
            raise DefinitionError("flag switch must be a string, got %r" % (original,))
        self.original = original = original.strip()
        self.negatable = False
        self.value_type = None
        self.value_delim = ""
        self.value_label = None

        if match := _SHORT_TOGGLE.fullmatch(original):
            self.switches = ("-" + match[1],)
        elif match := _LONG_NEGATABLE.fullmatch(original):
            self.switches = ("--" + match[1], "--no-" + match[1])
            self.negatable = True
        elif match := _LONG_TOGGLE.fullmatch(original):
            self.switches = ("--" + match[1],)
        elif match := _SHORT_OPTIONAL.fullmatch(original) or _LONG_OPTIONAL.fullmatch(original):
            self.switches = (match[1],)
            self.value_type = "optional"
            self.value_delim = "=" if "=" in match[2] else match[2].replace("[", "")
            self.value_label = match[3]
        elif match := _SHORT_REQUIRED.fullmatch(original) or _LONG_REQUIRED.fullmatch(original):
            self.switches = (match[1],)
            self.value_type = "required"
            self.value_delim = match[2]
            self.value_label = match[3]
        else:
            raise DefinitionError("illegal flag switch %r" % original)

        self.style = "long" if self.switches[0].startswith("--") else "short"

    def __repr__(self):
        return f"FlagSyntax({self.original!r})"

    @property
    def boolean(self):
        return self.value_type is None

    @property
    def canonical(self):
        """
        The spelling shown in help ("--[no-]x", "-s WORD", "--search=WORD", "--level[=N]").
        """
        if self.negatable:
            return "--[no-]" + self.switches[0][2:]
        if self.value_type == "optional":
            if self.style == "long" and self.value_delim == "=":
                return "%s[=%s]" % (self.switches[0], self.value_label)
            return "%s%s[%s]" % (self.switches[0], self.value_delim, self.value_label)
        if self.value_type == "required":
            return "%s%s%s" % (self.switches[0], self.value_delim, self.value_label)
        return self.switches[0]


def _set_handler(value, previous):
    return value


def _push_handler(value, previous):
    return [*(previous or ()), value]


HANDLERS = {
    "set": _set_handler,
    "push": _push_handler,
}


def _derive_switches(key, accept, default):
    name = str(key).replace("_", "-").strip("-")
    valued = accept is not Unset or not (default is Unset or default is None or isinstance(default, bool))
    if len(name) == 1:
        return ["-%s%s" % (name, " VALUE" if valued else "")]
    return ["--%s%s" % (name, "=VALUE" if valued else "")]


class Flag:
    """
    A declared flag: one key, one or more switch syntaxes, an acceptor, a default and a handler.

    The handler is called as handler(new_value, previous_value) each time the flag is seen;
    "set" (the default) replaces the previous value and "push" appends to a list.
    """

    def __init__(
            self,
            key,
            switches=(),
            /,
            accept=acceptors.DEFAULT,
            default=None,
            handler=Unset,
            desc="",
            long_desc=(),
    ):
        self.key = key
        self.syntaxes = [FlagSyntax(switch) for switch in switches]
        if not self.syntaxes:
            raise DefinitionError("flag %r must declare at least one switch" % (key,))
        if len({syntax.boolean for syntax in self.syntaxes}) > 1:
            raise DefinitionError("flag %r mixes toggle and value switches" % (key,))

        if isinstance(handler := coalesce(handler, "set"), str):
            try:
                handler = HANDLERS[handler]
            except KeyError:
                raise DefinitionError("flag %r has an unknown handler %r" % (key, handler)) from None
        if not callable(handler):
            raise DefinitionError("flag %r handler must be callable" % (key,))

        self.accept = accept
        self.default = default
        self.handler = handler
        self.desc = desc
        self.long_desc = list(long_desc)

    def __repr__(self):
        return f"Flag({self.key!r}, {', '.join(syntax.original for syntax in self.syntaxes)})"

    @property
    def boolean(self):
        return self.syntaxes[0].boolean

    @property
    def switches(self):
        return [switch for syntax in self.syntaxes for switch in syntax.switches]

    @property
    def value_label(self):
        for syntax in self.syntaxes:
            if syntax.value_label:
                return syntax.value_label
        return None

    def syntax_for(self, switch, /):
        for syntax in self.syntaxes:
            if switch in syntax.switches:
                return syntax
        raise KeyError(switch)

    def drop_switch(self, switch, /):
        """
        Remove the syntax answering to switch; returns True while the flag still has syntaxes.
        """
        self.syntaxes = [syntax for syntax in self.syntaxes if switch not in syntax.switches]
        return bool(self.syntaxes)


class Arg:
    """
    A positional slot; kind is "required", "optional" or "remaining".
    """

    def __init__(self, key, kind, /, accept=acceptors.DEFAULT, default=None, display_name=Unset, desc="", long_desc=()):
        self.key = key
        self.kind = kind
        self.accept = accept
        self.default = default
        self.display_name = coalesce(display_name, str(key).replace("-", "_").upper())
        self.desc = desc
        self.long_desc = list(long_desc)

    def __repr__(self):
        return f"Arg({self.key!r}, {self.kind!r})"


class Mixin:
    """
    A named, reusable bundle of members (functions and state) merged into a tool's context.

    Functions in the bundle are bound to the context when merged, so they receive the
    context as their first argument, the same way methods receive self.
    """

    def __init__(self, name, members=(), /, **extra):
        if not isinstance(name, str) or not name:
            raise DefinitionError("mixin name must be a non-empty string")
        self.name = name
        self.members = dict(members, **extra)

    def __repr__(self):
        return f"Mixin({self.name!r}, {sorted(self.members)!r})"


class Alias:
    """
    A named redirect from full_name to target_name, carrying its own priority.
    """
    full_name = mirror("full_name")
    target_name = mirror("target_name")
    priority = mirror("priority")
    source_path = mirror("source_path")

    def __init__(self, full_name, target_name, priority, /, source_path=None):
        self._full_name = tuple(full_name)
        self._target_name = tuple(target_name)
        self._priority = priority
        self._source_path = source_path

    def __repr__(self):
        return f"alias({self.display_name!r} -> {' '.join(self._target_name)!r}, priority={self._priority})"

    @property
    def simple_name(self):
        return self._full_name[-1] if self._full_name else ""

    @property
    def display_name(self):
        return " ".join(self._full_name)


class Definition:
    """
    Mutable record describing one tool.

    Read access goes through mirrored properties (fresh copies of containers);
    mutation goes through the add_*/set_*/include_* methods, which enforce the
    definition invariants and raise DefinitionError subclasses on violation.
    """
    full_name = mirror("full_name")
    priority = mirror("priority")
    flags = mirror("flags")
    required_args = mirror("required_args")
    optional_args = mirror("optional_args")
    default_data = mirror("default_data")
    desc = mirror("desc")
    long_desc = mirror("long_desc")
    mixins = mirror("mixins")
    middleware_stack = mirror("middleware_stack")
    source_path = mirror("source_path")

    def __init__(self, loader, full_name, priority, /, middleware_stack=()):
        self._loader = loader
        self._full_name = tuple(full_name)
        self._priority = priority
        self._flags = {}
        self._switches = {}
        self._required_args = []
        self._optional_args = []
        self._remaining_arg = None
        self._default_data = {}
        self._desc = ""
        self._long_desc = []
        self._acceptors = {}
        self._mixin_table = {}
        self._templates = {}
        self._mixins = {}
        self._middleware_stack = list(middleware_stack)
        self._run = None
        self._source_path = None
        self._argument_parsing_disabled = False
        self._finished = False

    def __repr__(self):
        return f"definition({self.display_name!r}, priority={self._priority})"

    # ── Identity ────────────────────────────────────────────────────────────

    @property
    def simple_name(self):
        return self._full_name[-1] if self._full_name else ""

    @property
    def display_name(self):
        return " ".join(self._full_name)

    @property
    def root(self):
        return not self._full_name

    @property
    def loader(self):
        return self._loader

    # ── State ───────────────────────────────────────────────────────────────

    @property
    def remaining_arg(self):
        return self._remaining_arg

    @property
    def args(self):
        """All positional slots in matching order."""
        return [*self._required_args, *self._optional_args, *filter(None, [self._remaining_arg])]

    @property
    def used_switches(self):
        return dict(self._switches)

    @property
    def runnable(self):
        return self._run is not None

    @property
    def run(self):
        return self._run

    @property
    def argument_parsing_disabled(self):
        return self._argument_parsing_disabled

    @property
    def finished(self):
        return self._finished

    def includes_definition(self):
        """
        True once any directive other than nesting configured this tool.
        """
        return bool(
            self._flags or self.args or self._desc or self._long_desc or self._mixins or
            self._acceptors or self._mixin_table or self._templates or
            self._run is not None or self._argument_parsing_disabled
        )

    # ── Scoped tables ───────────────────────────────────────────────────────

    def _lineage(self):
        yield self
        words = self._full_name
        while words:
            words = words[:-1]
            if isinstance(parent := self._loader.get_definition(words), Definition):
                yield parent

    def resolve_acceptor(self, name, /):
        for definition in self._lineage():
            if name in definition._acceptors:
                return definition._acceptors[name]
        return None

    def resolve_mixin(self, name, /):
        for definition in self._lineage():
            if name in definition._mixin_table:
                return definition._mixin_table[name]
        return None

    def resolve_template(self, name, /):
        for definition in self._lineage():
            if name in definition._templates:
                return definition._templates[name]
        return None

    def _accept(self, accept):
        if isinstance(accept, str):
            if (found := self.resolve_acceptor(accept)) is None:
                raise UnresolvedNameError("acceptor %r is not defined for tool %r" % (accept, self.display_name))
            return found
        return acceptors.coerce(accept)

    # ── Directives ──────────────────────────────────────────────────────────

    def _check_open(self, *, is_arg=False):
        if self._finished:
            raise FinishedDefinitionError("tool %r is already finished and cannot be changed" % self.display_name)
        if is_arg and self._argument_parsing_disabled:
            raise ParsingDisabledError(
                "cannot add flags or arguments to tool %r because argument parsing is disabled" % self.display_name
            )

    def lock_source_path(self, path, /):
        if path is None:
            return
        if self._source_path is None:
            self._source_path = path
        elif self._source_path != path:
            raise DefinitionError(
                "cannot redefine tool %r in %s (already defined in %s)" % (self.display_name, path, self._source_path)
            )

    def set_desc(self, desc, /):
        self._check_open()
        self._desc = str(desc)

    def set_long_desc(self, lines, /):
        self._check_open()
        self._long_desc = [lines] if isinstance(lines, str) else list(lines)

    def add_acceptor(self, acceptor, /):
        self._check_open()
        if acceptor.name in self._acceptors:
            raise DefinitionError("acceptor %r is already defined for tool %r" % (acceptor.name, self.display_name))
        self._acceptors[acceptor.name] = acceptor

    def add_mixin(self, mixin, /):
        self._check_open()
        if mixin.name in self._mixin_table:
            raise DefinitionError("mixin %r is already defined for tool %r" % (mixin.name, self.display_name))
        self._mixin_table[mixin.name] = mixin

    def add_template(self, name, template, /):
        self._check_open()
        if name in self._templates:
            raise DefinitionError("template %r is already defined for tool %r" % (name, self.display_name))
        self._templates[name] = template

    def include_mixin(self, mixin, /):
        self._check_open()
        if isinstance(mixin, str):
            if (found := self.resolve_mixin(mixin)) is None:
                raise UnresolvedNameError("mixin %r is not defined for tool %r" % (mixin, self.display_name))
            mixin = found
        if not isinstance(mixin, Mixin):
            raise DefinitionError("include() argument must be a mixin or a mixin name")
        self._mixins[mixin.name] = mixin

    def disable_argument_parsing(self):
        self._check_open()
        if self._flags or self.args:
            raise ParsingDisabledError(
                "cannot disable argument parsing for tool %r because it already declares flags or arguments"
                % self.display_name
            )
        self._argument_parsing_disabled = True

    def set_run(self, callback, /):
        self._check_open()
        if not callable(callback):
            raise DefinitionError("run behavior of tool %r must be callable" % self.display_name)
        self._run = callback

    def _claim_key(self, key, *, flag=False):
        # flag-on-flag reuse is decided by add_flag's collision mode
        if key in self._flags:
            if not flag:
                raise ArgCollisionError("key %r of tool %r is already used by a flag" % (key, self.display_name))
        elif key in self._default_data:
            raise ArgCollisionError("key %r of tool %r is already used by an argument" % (key, self.display_name))

    def _reindex(self):
        self._switches = {switch: flag for flag in self._flags.values() for switch in flag.switches}

    def add_flag(
            self,
            key,
            switches=(),
            /,
            accept=Unset,
            default=Unset,
            handler=Unset,
            desc="",
            long_desc=(),
            *,
            report_collisions=True,
            only_unique=False,
    ):
        """
        Declare a flag.

        Collisions
        - report_collisions=True: a reused key or switch raises FlagCollisionError.
        - report_collisions=False: the new flag wins; the previous owner loses the
          colliding switches (and is dropped once it has none left).
        - only_unique=True: switches already in use are skipped; when none remain
          (or the key is taken) the flag is not added and None is returned.
        """
        self._check_open(is_arg=True)
        self._claim_key(key, flag=True)
        flag = Flag(
            key,
            list(switches) or _derive_switches(key, accept, default),
            accept=self._accept(accept),
            default=coalesce(default, None),
            handler=handler,
            desc=desc,
            long_desc=long_desc,
        )

        if only_unique:
            if key in self._flags:
                return None
            flag.syntaxes = [
                syntax for syntax in flag.syntaxes
                if not any(switch in self._switches for switch in syntax.switches)
            ]
            if not flag.syntaxes:
                logger.debug("skipping flag %r on %r: every switch is taken", key, self.display_name)
                return None
        elif report_collisions:
            if key in self._flags:
                raise FlagCollisionError(
                    "flag key %r is already used in tool %r" % (key, self.display_name), key=key
                )
            for switch in flag.switches:
                if switch in self._switches:
                    raise FlagCollisionError(
                        "cannot use flag %r in tool %r because it is already assigned to %r"
                        % (switch, self.display_name, self._switches[switch].key),
                        key=key,
                        switch=switch,
                    )
        else:
            self._flags.pop(key, None)
            for switch in flag.switches:
                if (owner := self._switches.get(switch)) is not None and owner.key != key:
                    if not owner.drop_switch(switch):
                        del self._flags[owner.key]
                        del self._default_data[owner.key]
                    self._reindex()

        self._flags[key] = flag
        self._default_data[key] = flag.default
        self._reindex()
        return flag

    def _add_arg(self, arg):
        self._check_open(is_arg=True)
        self._claim_key(arg.key)
        if self._remaining_arg is not None:
            raise DefinitionError(
                "cannot add argument %r to tool %r after the remaining arguments slot" % (arg.key, self.display_name)
            )
        self._default_data[arg.key] = arg.default

    def add_required_arg(self, key, /, accept=Unset, display_name=Unset, desc="", long_desc=()):
        arg = Arg(key, "required", self._accept(accept), None, display_name, desc, long_desc)
        if self._optional_args:
            raise DefinitionError(
                "cannot add required argument %r to tool %r after optional arguments" % (key, self.display_name)
            )
        self._add_arg(arg)
        self._required_args.append(arg)
        return arg

    def add_optional_arg(self, key, /, default=None, accept=Unset, display_name=Unset, desc="", long_desc=()):
        arg = Arg(key, "optional", self._accept(accept), default, display_name, desc, long_desc)
        self._add_arg(arg)
        self._optional_args.append(arg)
        return arg

    def set_remaining_args(self, key, /, default=Unset, accept=Unset, display_name=Unset, desc="", long_desc=()):
        arg = Arg(key, "remaining", self._accept(accept), list(coalesce(default, [])), display_name, desc, long_desc)
        self._add_arg(arg)
        self._remaining_arg = arg
        return arg

    # ── Finishing ───────────────────────────────────────────────────────────

    def finish_definition(self, loader, /):
        """
        Run the middleware configuration hooks once, then lock the definition.
        """
        if not self._finished:
            logger.debug("finishing %r", self)
            configure(self._middleware_stack, self, loader)
            self._finished = True
        return self


__all__ = (
    "FlagSyntax",
    "Flag",
    "Arg",
    "Mixin",
    "Alias",
    "Definition",
    "HANDLERS",
)
