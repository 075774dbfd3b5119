"""
Arbor tool builder: the object configuration code receives and calls directives on.

Every source is handed a ToolBuilder bound to the name it covers. Directives
look up (or create) the definition for that name through the loader and mutate
it; when a higher-priority source already owns the name they are silent no-ops.
Nested tools get their own builder through tool(), which also works as a
decorator:

    def configure(tool):
        tool.desc("Project tasks")

        @tool.tool("build")
        def build(tool):
            tool.flag("release", "-r", "--release")
            tool.optional_arg("target", default="all")

            @tool.run
            def run(context):
                ...
"""
import logging
from pathlib import Path

from . import acceptors
from .definitions import Mixin
from .faults import AliasError, DefinitionError, UnresolvedNameError
from .utils import Unset

logger = logging.getLogger(__name__)


def _words(name, /):
    words = tuple(name.split()) if isinstance(name, str) else tuple(name)
    if not words or not all(isinstance(word, str) and word and not word.startswith("-") for word in words):
        raise DefinitionError("illegal tool name %r" % (name,))
    return words


class ToolBuilder:
    """
    Directive surface for one tool name within one configuration source.
    """

    def __init__(self, loader, words, priority, generation, source_path=None, /):
        self._loader = loader
        self._words = tuple(words)
        self._priority = priority
        self._generation = generation
        self._source_path = source_path

    def __repr__(self):
        return f"ToolBuilder({' '.join(self._words)!r}, priority={self._priority})"

    def __call__(self, configure, /):
        """Apply configure to this builder; lets a nested tool() be used as a decorator."""
        configure(self)
        return configure

    @property
    def words(self):
        return self._words

    @property
    def priority(self):
        return self._priority

    @property
    def source_path(self):
        return self._source_path

    @property
    def loader(self):
        return self._loader

    @property
    def definition(self):
        """The definition this builder configures, or None when a higher priority owns the name."""
        return self._loader.activate(self._words, self._priority, self._generation)

    def _target(self):
        if (tool := self.definition) is not None:
            tool.lock_source_path(self._source_path)
        return tool

    # ── Text ────────────────────────────────────────────────────────────────

    def desc(self, text, /):
        if tool := self._target():
            tool.set_desc(text)
        return self

    def long_desc(self, *lines):
        if tool := self._target():
            tool.set_long_desc(lines)
        return self

    # ── Flags and arguments ─────────────────────────────────────────────────

    def flag(
            self,
            key,
            /,
            *switches,
            accept=Unset,
            default=Unset,
            handler=Unset,
            report_collisions=True,
            desc="",
            long_desc=(),
    ):
        if tool := self._target():
            tool.add_flag(
                key, switches, accept, default, handler, desc, long_desc,
                report_collisions=report_collisions,
            )
        return self

    def required_arg(self, key, /, accept=Unset, display_name=Unset, desc="", long_desc=()):
        if tool := self._target():
            tool.add_required_arg(key, accept, display_name, desc, long_desc)
        return self

    def optional_arg(self, key, /, default=None, accept=Unset, display_name=Unset, desc="", long_desc=()):
        if tool := self._target():
            tool.add_optional_arg(key, default, accept, display_name, desc, long_desc)
        return self

    def remaining_args(self, key="remaining", /, default=Unset, accept=Unset, display_name=Unset, desc="",
                       long_desc=()):
        if tool := self._target():
            tool.set_remaining_args(key, default, accept, display_name, desc, long_desc)
        return self

    def disable_argument_parsing(self):
        if tool := self._target():
            tool.disable_argument_parsing()
        return self

    # ── Scoped tables ───────────────────────────────────────────────────────

    def acceptor(self, name, validator=None, converter=None, /):
        if tool := self._target():
            tool.add_acceptor(acceptors.acceptor(name, validator, converter))
        return self

    def mixin(self, name, members=(), /, **extra):
        if tool := self._target():
            tool.add_mixin(Mixin(name, members, **extra))
        return self

    def include(self, mixin, /):
        if tool := self._target():
            tool.include_mixin(mixin)
        return self

    def template(self, name, template, /):
        if tool := self._target():
            tool.add_template(name, template)
        return self

    def expand(self, template, /, *args, **kwargs):
        """
        Apply a template: a registered name, a template class (instantiated with args
        and kwargs) or a ready template instance.
        """
        if isinstance(template, str):
            if (tool := self.definition) is None:
                return self
            if (found := tool.resolve_template(template)) is None:
                raise UnresolvedNameError("template %r is not defined for tool %r" % (template, tool.display_name))
            template = found
        if isinstance(template, type):
            template = template(*args, **kwargs)
        elif args or kwargs:
            raise DefinitionError("arguments can only be given when expanding a template class")
        if not callable(getattr(template, "expand", None)):
            raise DefinitionError("%r is not a template" % (template,))
        template.expand(self)
        return self

    # ── Tree ────────────────────────────────────────────────────────────────

    def tool(self, word, configure=Unset, /):
        """
        Declare the nested tool word.

        With configure, it is applied to the nested builder and this builder is
        returned; without, the nested builder itself is returned (and can be used
        as a decorator).
        """
        if not isinstance(word, str) or len(_words(word)) != 1:
            raise DefinitionError("illegal tool name %r" % (word,))
        nested = type(self)(self._loader, self._words + (word,), self._priority, self._generation, self._source_path)
        self._loader.activate(nested.words, self._priority, self._generation)
        if configure is Unset:
            return nested
        configure(nested)
        return self

    def alias_tool(self, word, target, /):
        """Make the nested name word an alias of target (relative to this tool)."""
        self._loader.make_alias(
            self._words + _words(word), self._words + _words(target),
            self._priority, self._generation, self._source_path,
        )
        return self

    def alias_as(self, word, /):
        """Make the sibling name word an alias of this tool."""
        if not self._words:
            raise AliasError("the root tool cannot have aliases")
        self._loader.make_alias(
            self._words[:-1] + _words(word), self._words,
            self._priority, self._generation, self._source_path,
        )
        return self

    def load(self, path, /):
        """
        Load another configuration path into this tool, with the same coverage and priority.

        Relative paths are resolved against the directory of the current source file.
        """
        path = Path(path)
        if not path.is_absolute() and self._source_path is not None and Path(self._source_path).is_file():
            path = Path(self._source_path).parent / path
        logger.debug("including %s into %r", path, self._words)
        self._loader.include_path(path, self._words, None, self._priority, generation=self._generation)
        return self

    # ── Behavior ────────────────────────────────────────────────────────────

    def run(self, callback, /):
        """
        Give the tool executable behavior; callback receives the execution context.

        Usable as a decorator (the decorated name is bound to this builder).
        """
        if tool := self._target():
            tool.set_run(callback)
        return self


__all__ = (
    "ToolBuilder",
)
